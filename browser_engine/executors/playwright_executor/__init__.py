from .browser_manager import BrowserManager, BrowserSession
from .executor import PlaywrightExecutor
from .interpreter import ActionInterpreter

__all__ = [
    "ActionInterpreter",
    "BrowserManager",
    "BrowserSession",
    "PlaywrightExecutor",
]
