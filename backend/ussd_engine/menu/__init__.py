"""Menu engine: states, flow accumulators and the state machine."""
from ussd_engine.menu.context import Identity, MenuContext, Reply, SessionSnapshot
from ussd_engine.menu.machine import MenuMachine
from ussd_engine.menu.states import MenuState

__all__ = ["Identity", "MenuContext", "MenuMachine", "MenuState", "Reply", "SessionSnapshot"]
