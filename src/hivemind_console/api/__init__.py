from .client import HivemindClient, StateSource, TaskCommands
from .envelope import decode_command_response, decode_state_response

__all__ = [
    "HivemindClient",
    "StateSource",
    "TaskCommands",
    "decode_command_response",
    "decode_state_response",
]
