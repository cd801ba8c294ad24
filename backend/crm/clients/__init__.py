"""
Clients that call this API from the outside.
"""

from .processor_trigger import MessageProcessorTrigger

__all__ = ["MessageProcessorTrigger"]
