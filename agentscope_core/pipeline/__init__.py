from agentscope_core.pipeline.functional import fanout_pipeline, sequential_pipeline
from agentscope_core.pipeline.msghub import MsgHub

__all__ = ["MsgHub", "fanout_pipeline", "sequential_pipeline"]
