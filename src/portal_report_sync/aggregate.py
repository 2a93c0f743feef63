from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from .errors import PersistError
from .models import ExtractedRecord


logger = logging.getLogger(__name__)


class ResultSet:
    """
    Ordered, append-only collection of every record scraped in a run. Written once, at the end.

    Single writer: the runner owns it and hands it to each work unit. Parallel accounts would need a lock
    around `append`.

    `dedupe_field` (e.g. "policy") drops records whose (account, filter, field value) was already seen;
    by default duplicates are kept as-is.
    """

    def __init__(self, *, dedupe_field: Optional[str] = None) -> None:
        self._records: list[ExtractedRecord] = []
        self._dedupe_field = dedupe_field
        self._seen: set[tuple[str, str, str]] = set()

    def append(self, record: ExtractedRecord) -> bool:
        if self._dedupe_field:
            key = (record.account, record.filter, record.fields.get(self._dedupe_field, ""))
            if key in self._seen:
                logger.debug("Dropping duplicate record %s", key)
                return False
            self._seen.add(key)
        self._records.append(record)
        return True

    def extend(self, records: Iterable[ExtractedRecord]) -> int:
        added = 0
        for r in records:
            if self.append(r):
                added += 1
        return added

    def records(self) -> list[ExtractedRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ExtractedRecord]:
        return iter(list(self._records))

    def flush(self, path: Union[str, Path]) -> Path:
        """
        Serialize all records as one JSON array. Temp file + rename, so readers never see a partial file.
        """
        out = Path(path)
        tmp = out.with_name(out.name + ".tmp")
        payload = json.dumps([r.as_row() for r in self._records], indent=2, ensure_ascii=False)
        try:
            out.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, out)
        except OSError as e:
            try:
                tmp.unlink()
            except OSError:
                pass
            raise PersistError(f"Could not write results to {out}: {e}") from e

        logger.info("Saved %d records to %s", len(self._records), out)
        return out
