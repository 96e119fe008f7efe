"""
Issue a whole configuration: the authority first, then every leaf.

Leaves only depend on the authority's key and certificate, so they are
issued concurrently. One failing leaf does not stop the others; all
failures are collected and reported together.
"""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from .config.loader import Config
from .core.errors import CertError, IssuanceError
from .core.issuance import create_ca_cert, create_cert
from .core.specs import IssuedMaterial
from .core.template import Clock, utc_now

LOGGER = logging.getLogger("tlscert.batch")

CA_NAME = "ca"


@dataclass
class BatchResult:
    """
    Attributes:
        ca (IssuedMaterial): The authority's key and certificate.
        certs (dict[str, IssuedMaterial]): Issued leaves by configuration name.
        failures (dict[str, IssuanceError]): Leaves that could not be issued.
    """
    ca: IssuedMaterial
    certs: Dict[str, IssuedMaterial] = field(default_factory=dict)
    failures: Dict[str, IssuanceError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def issue_all(
    config: Config,
    clock: Clock = utc_now,
    max_workers: Optional[int] = None,
) -> BatchResult:
    """
    Issue the configured authority and all configured leaves.

    Args:
        config (Config): A validated configuration.
        clock (Clock, optional): Source of "now" for every validity window.
        max_workers (int | None, optional): Thread pool size for leaf issuance.

    Returns:
        BatchResult: Issued material plus per-leaf failures.

    Raises:
        IssuanceError: If the authority itself cannot be issued.
    """
    config.validate()
    ca_spec = config.ca_cert
    try:
        ca = create_ca_cert(ca_spec, clock)
    except CertError as e:
        raise IssuanceError(CA_NAME, ca_spec.subject.common_name, e) from e

    result = BatchResult(ca=ca)
    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as pool:
        fut_to_name = {
            pool.submit(create_cert, spec, ca.private_key, ca.certificate, clock): name
            for name, spec in config.certs.items()
        }
        for fut in concurrent.futures.as_completed(fut_to_name):
            name = fut_to_name[fut]
            try:
                result.certs[name] = fut.result()
            except CertError as e:
                cn = config.certs[name].subject.common_name
                LOGGER.error("issuing %s (CN=%s) failed: %s", name, cn, e)
                result.failures[name] = IssuanceError(name, cn, e)
    return result
