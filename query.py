"""
Listing, tag and statistics computations over the full video set.

All functions here are pure: they take the records loaded from the store and
never modify them.
"""

from collections import Counter
from datetime import timezone
from typing import List, Sequence

from schemas import TagCount, Video, VideoQuery, VideosPage, VideoStats, parse_timestamp


def _epoch(value: str) -> float:
    ts = parse_timestamp(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.timestamp()


SORT_KEYS = {
    "created_at": lambda v: _epoch(v.created_at),
    "title": lambda v: v.title.lower(),
    "views": lambda v: v.views,
}


def filter_tags(raw: str) -> List[str]:
    """Split a comma-separated tag filter into trimmed, lower-cased terms.

    Empty fragments are kept; an empty term is a substring of every tag, so it
    matches any video that has at least one tag.
    """
    return [t.strip().lower() for t in raw.split(",")]


def matches_tags(video: Video, terms: Sequence[str]) -> bool:
    # substring, not exact: filter "art" matches tag "smart"
    return any(term in tag.lower() for tag in video.tags for term in terms)


def query_videos(videos: Sequence[Video], params: VideoQuery) -> VideosPage:
    """
    Filter, sort and paginate videos.

    Steps, in order: title search, tag filter, stable sort on params.sort,
    count, slice [offset, offset + limit). The page number is
    offset // limit + 1 even when offset is not a multiple of limit.
    """
    selected = list(videos)

    if params.search:
        needle = params.search.lower()
        selected = [v for v in selected if needle in v.title.lower()]

    if params.tags:
        terms = filter_tags(params.tags)
        selected = [v for v in selected if matches_tags(v, terms)]

    # sorted() stays stable with reverse=True, so ties keep input order
    selected = sorted(selected, key=SORT_KEYS[params.sort], reverse=params.order == "desc")

    total = len(selected)
    window = selected[params.offset:params.offset + params.limit]

    return VideosPage(
        videos=window,
        total=total,
        page=params.offset // params.limit + 1,
        limit=params.limit,
    )


def count_tags(videos: Sequence[Video]) -> List[TagCount]:
    """Tag usage counts, case-folded and trimmed, most used first.

    A tag that is blank after trimming is counted under "".
    """
    counts = Counter(tag.strip().lower() for video in videos for tag in video.tags)
    return [TagCount(tag=tag, count=count) for tag, count in counts.most_common()]


def video_stats(videos: Sequence[Video]) -> VideoStats:
    total = len(videos)
    return VideoStats(
        total=total,
        total_views=sum(v.views for v in videos),
        average_duration=sum(v.duration for v in videos) / total if total else 0,
    )
