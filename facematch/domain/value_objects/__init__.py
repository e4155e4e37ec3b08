"""Value objects package."""
from .recognition import UNKNOWN_IDENTITY, FaceAssignment, MatchDecision, PhotoFaceResult

__all__ = ["UNKNOWN_IDENTITY", "FaceAssignment", "MatchDecision", "PhotoFaceResult"]
