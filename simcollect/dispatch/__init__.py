from simcollect.dispatch.sink import BaseSink, OutputSink
from simcollect.dispatch.router import DispatchRouter, ExperimentState, SinkRegistration

__all__ = ["OutputSink", "BaseSink", "DispatchRouter", "ExperimentState", "SinkRegistration"]
