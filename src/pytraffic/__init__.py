"""pytraffic - Live state for a connected traffic-signal installation."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pytraffic")
except PackageNotFoundError:
    __version__ = "0+local"
from pytraffic._constants import Stream
from pytraffic._mqtt import MqttPushSource, PushSource, SubscriptionHandle
from pytraffic._transport import DataSource, RestDataSource
from pytraffic.config import SiteLocation, TrafficConfig
from pytraffic.exceptions import (
    TrafficAuthenticationError,
    TrafficCommitError,
    TrafficCommitInProgressError,
    TrafficConfigError,
    TrafficError,
    TrafficInvalidEditError,
    TrafficQueryError,
    TrafficTransportError,
)
from pytraffic.models import (
    ConfigRecord,
    ConfigView,
    DashboardSnapshot,
    DerivedSignals,
    EventType,
    Sample,
    SignalColor,
    TimingValues,
)
from pytraffic.monitor import TrafficMonitor, open_monitor
from pytraffic.session import FileSessionStore, MemorySessionStore, SessionContext, SessionStore

__all__ = [
    "__version__",
    "ConfigRecord",
    "ConfigView",
    "DashboardSnapshot",
    "DataSource",
    "DerivedSignals",
    "EventType",
    "FileSessionStore",
    "MemorySessionStore",
    "MqttPushSource",
    "PushSource",
    "RestDataSource",
    "Sample",
    "SessionContext",
    "SessionStore",
    "SignalColor",
    "SiteLocation",
    "Stream",
    "SubscriptionHandle",
    "TimingValues",
    "TrafficAuthenticationError",
    "TrafficCommitError",
    "TrafficCommitInProgressError",
    "TrafficConfig",
    "TrafficConfigError",
    "TrafficError",
    "TrafficInvalidEditError",
    "TrafficMonitor",
    "TrafficQueryError",
    "TrafficTransportError",
    "open_monitor",
]
