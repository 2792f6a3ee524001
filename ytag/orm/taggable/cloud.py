"""标签云分级

把标签计数映射到一组样式类（由小到大），不负责渲染 HTML。

使用示例:
    for tag_count, css_class in tag_cloud(Photo.tag_counts(), ["s1", "s2", "s3", "s4"]):
        print(tag_count.name, css_class)
"""

from typing import Iterable, Iterator, Sequence, Tuple

from .frequency import TagCount


def tag_cloud(counts: Iterable[TagCount], classes: Sequence[str]) -> Iterator[Tuple[TagCount, str]]:
    """按计数占最大计数的比例为每个标签选择样式类
    
    索引 = floor(count / max_count * (len(classes) - 1))，只有最大计数落在最后一个样式类
    """
    counts = list(counts)
    if not counts or not classes:
        return
    
    max_count = max(item.count for item in counts)
    last = len(classes) - 1
    for item in counts:
        index = item.count * last // max_count if max_count > 0 else 0
        yield item, classes[index]
