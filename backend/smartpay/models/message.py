"""
Signable Message Base Model

Every message exchanged with the processor derives an ordered list of
string fields that is signed with HMAC. The order is part of the wire
contract and is listed explicitly by each message type.
"""
from typing import List, Optional
from pydantic import BaseModel


class SignableMessage(BaseModel):
    """
    Base class for signed processor messages.

    Subclasses implement `signature_fields()` and list their fields in the
    exact order the processor documents. Changing that order is a protocol
    change: signatures stop matching without any other error.
    """

    signature: Optional[str] = None

    def signature_fields(self) -> List[str]:
        raise NotImplementedError(
            f"{type(self).__name__} does not define its signature fields"
        )

    def sign(self, signature_service):
        """Return a copy of this message carrying its signature."""
        return self.model_copy(update={"signature": signature_service.sign(self)})

    def is_valid(self, signature_service) -> bool:
        """Check the carried signature against the current field values."""
        return signature_service.verify(self)
