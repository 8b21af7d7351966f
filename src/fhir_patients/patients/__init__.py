from .models import ContactPoint, Draft, Gender, LocalRecord, Patient
from .edit_model import New, PatientEditModel, SavedLocal, Synced, SyncState

__all__ = [
    "ContactPoint",
    "Draft",
    "Gender",
    "LocalRecord",
    "Patient",
    "PatientEditModel",
    "New",
    "SavedLocal",
    "Synced",
    "SyncState",
]
