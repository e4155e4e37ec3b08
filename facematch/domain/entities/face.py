"""Core face and identity domain entities."""
from datetime import datetime
from typing import List, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _to_vector(v: Union[np.ndarray, list]) -> np.ndarray:
    """Convert a list or array into a read-only float vector."""
    array = np.array(v, dtype=np.float64)
    array.setflags(write=False)
    return array


class BoundingBox(BaseModel):
    """Face bounding box in source-image pixel coordinates."""
    x: float = Field(..., description="Left coordinate of the bounding box")
    y: float = Field(..., description="Top coordinate of the bounding box")
    width: float = Field(..., ge=0, description="Width of the bounding box")
    height: float = Field(..., ge=0, description="Height of the bounding box")

    @property
    def area(self) -> float:
        """Box area in square pixels, used to rank faces by prominence."""
        return self.width * self.height


class DetectedFace(BaseModel):
    """A face found by a detector, with its embedding."""
    embedding: np.ndarray = Field(..., description="Face embedding vector")
    bounding_box: BoundingBox = Field(..., description="Bounding box coordinates")
    confidence: float = Field(1.0, description="Confidence score of the detection")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator('embedding', mode='before')
    @classmethod
    def validate_embedding(cls, v: Union[np.ndarray, list]) -> np.ndarray:
        """Validate and convert embedding to numpy array if needed."""
        return _to_vector(v)


class Identity(BaseModel):
    """A cluster of embeddings believed to belong to one person.

    Samples are append-only and kept in insertion order. The identity is
    owned by the identity store; the engine only reads it and appends.
    """
    identity_id: str = Field(..., description="Human-readable identifier, e.g. person_3")
    namespace: Optional[str] = Field(None, description="Event scoping the identity, None for global")
    samples: List[np.ndarray] = Field(default_factory=list, description="Embedding samples, oldest first")
    thumbnail_ref: Optional[str] = Field(None, description="Artifact reference of the preview image")
    photo_count: int = Field(0, description="Number of committed sightings")
    last_seen: Optional[datetime] = Field(None, description="Timestamp of the latest committed sighting")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator('samples', mode='before')
    @classmethod
    def validate_samples(cls, v: List[Union[np.ndarray, list]]) -> List[np.ndarray]:
        """Convert every stored sample to a numpy vector."""
        return [_to_vector(sample) for sample in v]

    @property
    def sample_count(self) -> int:
        return len(self.samples)
