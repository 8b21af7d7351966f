"""Example: search a FHIR server for patients by family name.

Runs against the server named by FHIR_BASE_URL (default: the public HAPI
R4 server), so it needs network access.

Usage:
    python examples/search_patients.py Smith
"""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fhir_patients.config import Settings, build_gateway, configure_logging
from fhir_patients.errors import PatientSyncError


def main() -> None:
    family_name = sys.argv[1] if len(sys.argv) > 1 else "Smith"
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    gateway = build_gateway(settings)
    print(f"Searching {settings.base_url} for family={family_name!r}...\n")
    try:
        patients = gateway.find_by_family_name(family_name)
    except PatientSyncError as exc:
        print(f"Search failed: {exc}", file=sys.stderr)
        sys.exit(1)

    for patient in patients:
        print(f"{patient.reference:<24} {patient.given_name or '':<16} {patient.family_name or '':<16} "
              f"{patient.birth_date or '':<12} {patient.gender or ''}")
    print(f"\n{len(patients)} match(es).")


if __name__ == "__main__":
    main()
