from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .config import AccountConfig
from .models import SessionRecord


logger = logging.getLogger(__name__)


class SessionStore:
    """
    One JSON file per account holding the cookies + user agent of the last good session.

    Reads never raise: a missing file means "never authenticated", and an unreadable/corrupt file is moved
    aside and treated the same way. Writes are last-write-wins.
    """

    def path_for(self, account: AccountConfig) -> Path:
        if not account.session_file:
            raise ValueError(f"Account {account.email} has no session_file configured")
        return Path(account.session_file)

    def exists(self, account: AccountConfig) -> bool:
        try:
            return self.path_for(account).is_file()
        except Exception:
            return False

    def load(self, account: AccountConfig) -> Optional[SessionRecord]:
        try:
            path = self.path_for(account)
        except ValueError:
            logger.warning("No session file configured for %s; starting without cookies.", account.email)
            return None
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            record = SessionRecord.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Session file for %s is unreadable; ignoring it. (%s)", account.email, e)
            self._quarantine_file(path)
            return None

        if not record.cookies:
            logger.info("Session file for %s has no cookies; treating as absent.", account.email)
            return None
        return record

    def save(self, account: AccountConfig, record: SessionRecord) -> Path:
        path = self.path_for(account)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(record.model_dump(mode="json"), indent=2), encoding="utf-8")
        tmp.replace(path)
        logger.info("Saved session (%d cookies) for %s", len(record.cookies), account.email)
        return path

    def delete(self, account: AccountConfig) -> bool:
        try:
            path = self.path_for(account)
            if path.exists():
                path.unlink()
                logger.info("Deleted session for %s: %s", account.email, path)
                return True
        except Exception:
            logger.warning("Failed to delete session for %s", account.email, exc_info=True)
        return False

    def _quarantine_file(self, path: Path) -> None:
        try:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
            path.replace(path.with_name(f"{path.name}.corrupt-{stamp}"))
        except Exception:
            logger.debug("Failed to quarantine file=%s", path, exc_info=True)
