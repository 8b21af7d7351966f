from .fhir_client import FHIRClient
from .patient_gateway import PatientGateway

__all__ = ["FHIRClient", "PatientGateway"]
