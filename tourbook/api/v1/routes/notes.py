from fastapi import APIRouter

from tourbook.schemas.booking import BookingExtras, NotesIn, NotesOut
from tourbook.services.notes_codec import decode_extras, encode_extras

router = APIRouter(prefix="/notes", tags=["notes"])


@router.post("/decode", response_model=BookingExtras)
def decode_notes(body: NotesIn):
    return decode_extras(body.notes)


@router.post("/encode", response_model=NotesOut)
def encode_notes(body: BookingExtras):
    return NotesOut(notes=encode_extras(body))
