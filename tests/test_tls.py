"""Tests for TLS credential construction (infra/tls.py).

Uses the static PEM fixtures under ``tests/fixtures/tls`` (a test CA and
a client certificate/key signed by it).
"""

from __future__ import annotations

import ssl
from pathlib import Path

import pytest

from helm_cli.core.models import TLSConfig
from helm_cli.exceptions import TLSConfigInvalidError
from helm_cli.infra.tls import build_credential


class TestVerifyMode:
    def test_validates_server_chain(self, tls_files: dict[str, str]) -> None:
        context = build_credential(
            TLSConfig(verify=True, ca_cert_path=tls_files["ca"], cert_path=tls_files["cert"], key_path=tls_files["key"]),
        )
        assert isinstance(context, ssl.SSLContext)
        assert context.verify_mode == ssl.CERT_REQUIRED

    def test_trust_root_comes_from_ca_file(self, tls_files: dict[str, str]) -> None:
        context = build_credential(
            TLSConfig(verify=True, ca_cert_path=tls_files["ca"], cert_path=tls_files["cert"], key_path=tls_files["key"]),
        )
        subjects = [dict(rdn[0] for rdn in c["subject"]) for c in context.get_ca_certs()]
        assert {"commonName": "helm-test-ca"} in subjects

    def test_requires_ca_certificate(self, tls_files: dict[str, str], tmp_path: Path) -> None:
        with pytest.raises(TLSConfigInvalidError, match="CA certificate"):
            build_credential(
                TLSConfig(
                    verify=True,
                    ca_cert_path=str(tmp_path / "missing-ca.pem"),
                    cert_path=tls_files["cert"],
                    key_path=tls_files["key"],
                ),
            )

    def test_malformed_ca_is_rejected(self, tls_files: dict[str, str], tmp_path: Path) -> None:
        bogus = tmp_path / "ca.pem"
        bogus.write_text("not a certificate\n")
        with pytest.raises(TLSConfigInvalidError):
            build_credential(
                TLSConfig(verify=True, ca_cert_path=str(bogus), cert_path=tls_files["cert"], key_path=tls_files["key"]),
            )


class TestEnableOnly:
    def test_skips_server_validation(self, tls_files: dict[str, str]) -> None:
        context = build_credential(TLSConfig(enable=True, cert_path=tls_files["cert"], key_path=tls_files["key"]))
        assert context.verify_mode == ssl.CERT_NONE
        assert context.check_hostname is False

    def test_ca_not_required(self, tls_files: dict[str, str], tmp_path: Path) -> None:
        context = build_credential(
            TLSConfig(
                enable=True,
                ca_cert_path=str(tmp_path / "absent.pem"),
                cert_path=tls_files["cert"],
                key_path=tls_files["key"],
            ),
        )
        assert context.verify_mode == ssl.CERT_NONE

    def test_client_certificate_still_required(self, tls_files: dict[str, str], tmp_path: Path) -> None:
        with pytest.raises(TLSConfigInvalidError, match="TLS certificate"):
            build_credential(
                TLSConfig(enable=True, cert_path=str(tmp_path / "nope.pem"), key_path=tls_files["key"]),
            )

    def test_mismatched_material_is_rejected(self, tls_files: dict[str, str]) -> None:
        # The CA certificate does not match the client key.
        with pytest.raises(TLSConfigInvalidError, match="key pair"):
            build_credential(TLSConfig(enable=True, cert_path=tls_files["ca"], key_path=tls_files["key"]))

    def test_empty_key_path(self, tls_files: dict[str, str]) -> None:
        with pytest.raises(TLSConfigInvalidError, match="path is empty"):
            build_credential(TLSConfig(enable=True, cert_path=tls_files["cert"], key_path=""))
