import json
from datetime import datetime, timezone

import structlog

from keystore_core.logging import REDACTED, redact_key_material
from keystore_core.models import Key, KeyVersionIdentifier


def _key() -> Key:
    return Key(
        key_version_identifier=KeyVersionIdentifier(owner="o", key="k", version=2),
        value=b"\x00secret-material",
        type="AES_256_GCM",
        active=True,
        create_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_raw_bytes_and_value_fields_are_redacted() -> None:
    event = redact_key_material(
        None,
        "info",
        {"event": "ddbdao.store", "value": "c2VjcmV0", "key_value": {"B": b"x"}, "blob": bytearray(b"x"), "owner": "o"},
    )
    assert event == {"event": "ddbdao.store", "value": REDACTED, "key_value": REDACTED, "blob": REDACTED, "owner": "o"}


def test_keys_are_logged_by_identifier() -> None:
    logger = structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[redact_key_material, structlog.processors.JSONRenderer()],
        wrapper_class=structlog.BoundLogger,
    )

    rendered = logger.info("cassandradao.store", key=_key(), material=_key().value)

    assert "secret-material" not in rendered
    payload = json.loads(rendered)
    assert payload["material"] == REDACTED
    assert payload["key"] == str(_key().key_version_identifier)
