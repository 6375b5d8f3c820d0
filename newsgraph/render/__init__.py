"""Frame scheduling for the headless scene."""

from newsgraph.render.loop import Frame, RecordingScene, RenderLoop, SceneWriter

__all__ = ["Frame", "RecordingScene", "RenderLoop", "SceneWriter"]
