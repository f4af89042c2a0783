"""In-memory emergency contact list."""
import threading
import uuid
from dataclasses import dataclass, field
from typing import List, Protocol
from safesignal.core.logging import logger


@dataclass(frozen=True)
class Contact:
    name: str
    phone: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "phone": self.phone}


class ContactProvider(Protocol):
    def get_contacts(self) -> List[Contact]:
        ...


class ContactBook:
    """Ordered list of emergency contacts shared by the API and the alert path."""

    def __init__(self):
        self._contacts: List[Contact] = []
        self._lock = threading.Lock()

    def add(self, name: str, phone: str) -> Contact:
        """
        Add a contact.

        Raises:
            ValueError: if name or phone is blank
        """
        name, phone = name.strip(), phone.strip()
        if not name or not phone:
            raise ValueError("Contact name and phone are required")
        contact = Contact(name=name, phone=phone)
        with self._lock:
            self._contacts.append(contact)
        logger.info(f"Added emergency contact {contact.id}")
        return contact

    def remove(self, contact_id: str) -> bool:
        with self._lock:
            before = len(self._contacts)
            self._contacts = [c for c in self._contacts if c.id != contact_id]
            removed = len(self._contacts) < before
        if removed:
            logger.info(f"Removed emergency contact {contact_id}")
        return removed

    def get_contacts(self) -> List[Contact]:
        with self._lock:
            return list(self._contacts)

    def clear(self) -> None:
        with self._lock:
            self._contacts = []

    def __len__(self) -> int:
        return len(self._contacts)


# Global contact book instance
contact_book = ContactBook()
