"""流式摄取管线。

数据块按以下顺序逐层向下流动（每收到一个数据块走一遍）：

- reader: 读取字节并做边界安全的增量解码 (StreamReader)。
- framing: 跨数据块重组按行分隔的文本 (LineFramer)。
- events: 识别 data: 事件行并对负载分类 (EventParser / PayloadClassifier)。
- tags: 从累积正文中提取 <think>/<tool> 标签 (EmbeddedTagExtractor)。
- cancellation: 协作式取消 (CancellationToken / CancellationController)。
"""

from chat_core.streaming.cancellation import CancellationController, CancellationToken
from chat_core.streaming.events import EventParser, PayloadClassifier
from chat_core.streaming.framing import LineFramer
from chat_core.streaming.reader import ReadResult, StreamReader
from chat_core.streaming.tags import EmbeddedTagExtractor, ExtractedContent

__all__ = [
    "CancellationController",
    "CancellationToken",
    "EventParser",
    "PayloadClassifier",
    "LineFramer",
    "ReadResult",
    "StreamReader",
    "EmbeddedTagExtractor",
    "ExtractedContent",
]
