"""
Photo search predicate.

Pure functions: no state, safe to call from any number of tasks at once.
"""
from typing import Iterable, List

from photo_manager.models.photo import Photo
from photo_manager.schemas.search import SearchCriteria


def matches(photo: Photo, criteria: SearchCriteria) -> bool:
    """
    True iff ``photo`` satisfies every criterion that is set.

    Hashtags match if the photo carries any of the requested tags; size and
    date bounds are inclusive; author compares the author's name without
    regard to case.
    """
    if criteria.hashtags:
        if criteria.hashtags.isdisjoint(photo.hashtags or ()):
            return False

    if criteria.min_size is not None and photo.file_size < criteria.min_size:
        return False

    if criteria.max_size is not None and photo.file_size > criteria.max_size:
        return False

    if criteria.start_date is not None and photo.uploaded_at < criteria.start_date:
        return False

    if criteria.end_date is not None and photo.uploaded_at > criteria.end_date:
        return False

    if criteria.author is not None:
        if (photo.author_name or "").casefold() != criteria.author.casefold():
            return False

    return True


def filter_photos(photos: Iterable[Photo], criteria: SearchCriteria) -> List[Photo]:
    """Photos matching ``criteria``, in input order."""
    return [photo for photo in photos if matches(photo, criteria)]
