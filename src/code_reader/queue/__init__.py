from code_reader.queue.consumer import FlowQueueConsumer, build_consumer
from code_reader.queue.memory_queue import InMemoryQueue, MessageQueue, QueuedMessage
from code_reader.queue.messages import FlowExecutionMessage

__all__ = [
    "FlowExecutionMessage",
    "FlowQueueConsumer",
    "InMemoryQueue",
    "MessageQueue",
    "QueuedMessage",
    "build_consumer",
]
