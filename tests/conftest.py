from typing import Callable, Generator, List, Optional

import pytest

from coreason_props.platform.simulation import (
    InMemoryIdentityStore,
    SimulationForegroundObserver,
    SimulationProcessIdentity,
)
from coreason_props.schemas import CertifiedBuildProperties
from coreason_props.services import CoreasonPropsService
from coreason_props.utils.logger import logger

CHEETAH_FINGERPRINT = "google/cheetah/cheetah:13/TQ3A.230805.001/10316531:user/release-keys"


@pytest.fixture
def log_messages() -> Generator[List[str], None, None]:
    """Capture loguru messages emitted during the test."""
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def certified() -> CertifiedBuildProperties:
    """Certified properties with product/device/build ID/type/tags left to their fallbacks."""
    return CertifiedBuildProperties.from_list(
        ["", "", "Google", "google", "Pixel 7 Pro", CHEETAH_FINGERPRINT, "2023-08-05", "33", "", "", ""]
    )


@pytest.fixture
def store() -> InMemoryIdentityStore:
    return InMemoryIdentityStore()


@pytest.fixture
def observer() -> Generator[SimulationForegroundObserver, None, None]:
    observer = SimulationForegroundObserver()
    yield observer
    observer.close()


@pytest.fixture
def make_service(
    store: InMemoryIdentityStore,
    observer: SimulationForegroundObserver,
    certified: CertifiedBuildProperties,
) -> Callable[..., CoreasonPropsService]:
    """Factory building a service on the simulated platform."""

    def _make(
        process_name: str = "com.example.app",
        device_codename: str = "generic",
        certified_props: Optional[CertifiedBuildProperties] = None,
    ) -> CoreasonPropsService:
        return CoreasonPropsService(
            store=store,
            observer=observer,
            process=SimulationProcessIdentity(
                process_name=process_name,
                device_codename=device_codename,
                uid_packages={10100: "com.google.android.gms", 10200: "org.example.notes"},
            ),
            certified=certified_props if certified_props is not None else certified,
        )

    return _make
