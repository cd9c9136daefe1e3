from coinflip.tests.mocks.clock import VirtualClock, settle
from coinflip.tests.mocks.connection import MockConnection

__all__ = ["MockConnection", "VirtualClock", "settle"]
