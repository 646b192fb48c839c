from typing import Dict

from media_sync.models.content import Genre
from media_sync.services.content_store import ContentStore


class GenreCache:
    """
    Genre terms keyed by Media Manager genre ID.

    Built from the database when created and extended as new genres are
    added, so one instance should live for one sync pass or work item.
    """

    def __init__(self, store: ContentStore):
        self.store = store
        self._genres: Dict[str, Genre] = {
            g.external_id: g for g in store.db.query(Genre).filter(Genre.external_id.isnot(None)).all()
        }

    def __contains__(self, external_id: str) -> bool:
        return external_id in self._genres

    def get_or_add(self, external_id: str, name: str, slug: str = None) -> Genre:
        genre = self._genres.get(external_id)
        if genre is None:
            genre = self.store.create(Genre)
            genre.external_id = external_id
            genre.name = name
            genre.slug = slug
            # Committed together with the record that uses it.
            self.store.stage(genre)
            self._genres[external_id] = genre
        return genre
