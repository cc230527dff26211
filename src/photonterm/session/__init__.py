"""Interactive session lifecycle for photonterm."""

from photonterm.session.controller import SessionController, SessionListener

__all__ = ["SessionController", "SessionListener"]
