"""Face identity value objects."""
from typing import List, Optional

from pydantic import BaseModel, Field

from facematch.domain.entities.face import BoundingBox

# Identity reported for a photo in which no face could be committed
UNKNOWN_IDENTITY = "unknown"


class MatchDecision(BaseModel):
    """Outcome of matching one embedding against a namespace."""
    identity_id: str = Field(..., description="Matched or newly allocated identity")
    distance: Optional[float] = Field(None, description="Distance to the closest identity, None if none exist")
    is_new_identity: bool = Field(..., description="Whether a new identity must be created")
    threshold: Optional[float] = Field(None, description="Adaptive threshold that was applied")
    sample_count: int = Field(0, description="Samples held by the closest identity")
    is_fallback: bool = Field(False, description="Whether the id came from the failure fallback")


class FaceAssignment(BaseModel):
    """Identity assigned to one face of a photo."""
    identity_id: str = Field(..., description="Identity the face was committed to")
    bounding_box: BoundingBox = Field(..., description="Face position in the photo")
    distance: Optional[float] = Field(None, description="Distance to the matched identity")
    is_new_identity: bool = Field(False, description="Whether the identity was created for this face")
    thumbnail_ref: Optional[str] = Field(None, description="Preview artifact created for this face")


class PhotoFaceResult(BaseModel):
    """Face metadata reported for a photo once all its faces are processed."""
    faces: List[FaceAssignment] = Field(default_factory=list, description="Assignments, largest face first")

    @property
    def face_ids(self) -> List[str]:
        if not self.faces:
            return [UNKNOWN_IDENTITY]
        return [face.identity_id for face in self.faces]

    @property
    def main_face_id(self) -> str:
        if not self.faces:
            return UNKNOWN_IDENTITY
        largest = max(self.faces, key=lambda face: face.bounding_box.area)
        return largest.identity_id

    @property
    def boxes(self) -> List[BoundingBox]:
        return [face.bounding_box for face in self.faces]
