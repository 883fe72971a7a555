"""
Pose estimation utilities.

This package defines a model-agnostic LandmarkFrame and PoseSource interface
plus the MediaPipe adapter, so the gesture logic never touches model output.
"""
