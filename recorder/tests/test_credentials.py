"""
Tests for the credential store and token cache file
"""

import json
import threading

import pytest

from statify.credentials import CredentialStore, TokenFile
from statify.models import Credential


class TestCredentialStore:
    """Snapshot semantics"""

    def test_empty_store_is_not_populated(self):
        store = CredentialStore()
        assert store.is_populated is False
        assert store.access_token == ""

    def test_set_replaces_whole_snapshot(self):
        store = CredentialStore(Credential("a1", "r1", 3600))
        replacement = Credential("a2", "r2", 1800)

        store.set(replacement)

        assert store.get() is replacement
        assert store.is_populated is True

    def test_rejects_non_credentials(self):
        store = CredentialStore()
        with pytest.raises(TypeError):
            store.set({"access_token": "a"})

    def test_readers_never_see_mixed_pairs(self):
        """Access and refresh token always come from the same write"""
        store = CredentialStore(Credential("a0", "r0", 3600))
        mismatches = []
        done = threading.Event()

        def writer():
            for i in range(2000):
                store.set(Credential(f"a{i}", f"r{i}", 3600))
            done.set()

        def reader():
            while not done.is_set():
                credential = store.get()
                if credential.access_token[1:] != credential.refresh_token[1:]:
                    mismatches.append(credential)

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert mismatches == []


class TestTokenFile:
    """On-disk credential cache"""

    def test_round_trip(self, tmp_path):
        token_file = TokenFile(tmp_path / "data" / "token.json")
        credential = Credential("access", "refresh", 3600, received_at=1_700_000_000.0)

        token_file.save(credential)

        assert token_file.load() == credential
        assert (token_file.path.stat().st_mode & 0o777) == 0o600

    def test_missing_file(self, tmp_path):
        assert TokenFile(tmp_path / "token.json").load() is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "token.json"
        path.write_text("{not json")
        assert TokenFile(path).load() is None

    def test_missing_access_token(self, tmp_path):
        path = tmp_path / "token.json"
        path.write_text(json.dumps({"refresh_token": "r"}))
        assert TokenFile(path).load() is None

    def test_save_failure_is_not_raised(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file where a directory should be")
        TokenFile(blocker / "token.json").save(Credential("a", "r", 60))
