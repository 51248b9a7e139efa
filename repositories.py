"""
Repositories over the MongoDB collections.

Reads that fail in the store are logged and come back empty, so a screen
shows "no data" instead of crashing. Every write that fails raises
WriteFailed.
"""
import logging
from contextlib import contextmanager
from datetime import date
from typing import List, Optional

from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import (
    create_document,
    delete_document,
    get_documents,
    serialize,
    to_object_id,
    update_document,
)
from errors import InvalidArgument, NotFound, StoreUnavailable, WriteFailed
from grading import calculate_grade
from schemas import (
    ACHIEVEMENT_CATEGORIES,
    CASE_CATEGORIES,
    STORED,
    HeadmasterNote,
    Supervision,
    SupervisionKind,
    Teacher,
)

logger = logging.getLogger(__name__)

TEACHERS = "teachers"
HEADMASTER_NOTES = "headmasterNotes"
ARCHIVE_FIELDS = {"archived", "archivedDate"}


@contextmanager
def _writing(action: str):
    try:
        yield
    except PyMongoError as e:
        logger.exception("Error %s", action)
        raise WriteFailed(f"Error {action}: {e}") from e


def _parse(model, docs: List[dict]) -> list:
    items = []
    for d in docs:
        try:
            items.append(model.model_validate(d, context=STORED))
        except ValidationError as e:
            logger.error("Skipping unreadable %s %s: %s", model.__name__, d.get("id"), e)
    return items


def is_valid_id(value) -> bool:
    return (
        isinstance(value, str)
        and value.strip() != ""
        and value not in ("undefined", "null")
    )


class _Repository:
    collection: str

    def __init__(self, db: Optional[Database]):
        if db is None:
            raise StoreUnavailable("Database not available")
        self.db = db

    def _fetch(self, what: str, filter_dict: Optional[dict] = None) -> List[dict]:
        try:
            return get_documents(self.db, self.collection, filter_dict)
        except PyMongoError:
            logger.exception("Error getting %s", what)
            return []

    def _remove(self, doc_id: str, what: str) -> None:
        with _writing(f"deleting {what}"):
            deleted = delete_document(self.db, self.collection, doc_id)
        if not deleted:
            raise NotFound(f"{what.capitalize()} not found")
        logger.info("Deleted %s %s", what, doc_id)


class TeacherRepository(_Repository):
    collection = TEACHERS

    def _all(self, what: str) -> List[Teacher]:
        return _parse(Teacher, self._fetch(what))

    def list_active(self) -> List[Teacher]:
        return [t for t in self._all("teachers") if not t.archived]

    def list_archived(self) -> List[Teacher]:
        return [t for t in self._all("archived teachers") if t.archived]

    def get(self, teacher_id: str) -> Optional[Teacher]:
        oid = to_object_id(teacher_id)
        if oid is None:
            return None
        try:
            doc = self.db[self.collection].find_one({"_id": oid})
        except PyMongoError:
            logger.exception("Error getting teacher %s", teacher_id)
            return None
        found = _parse(Teacher, [serialize(doc)]) if doc else []
        return found[0] if found else None

    def save(self, teacher: Teacher) -> str:
        """
        Insert a new teacher, or overwrite the provided fields of an existing one.

        Updates never touch archived/archivedDate; those change only through
        archive() and unarchive().
        """
        with _writing("saving teacher"):
            if not teacher.id:
                teacher.id = create_document(
                    self.db, self.collection, teacher.model_dump(exclude={"id", "status"})
                )
                return teacher.id
            fields = teacher.model_dump(exclude=ARCHIVE_FIELDS | {"id", "status"}, exclude_unset=True)
            matched = update_document(self.db, self.collection, teacher.id, fields)
        if not matched:
            raise NotFound("Teacher not found")
        return teacher.id

    def remove(self, teacher_id: str) -> None:
        self._remove(teacher_id, "teacher")

    def _set_archive_state(self, teacher_id: str, archived: bool) -> None:
        fields = {
            "archived": archived,
            "archivedDate": date.today().isoformat() if archived else None,
        }
        action = "archiving" if archived else "unarchiving"
        with _writing(f"{action} teacher"):
            matched = update_document(self.db, self.collection, teacher_id, fields)
        if not matched:
            raise NotFound("Teacher not found")
        logger.info("%s teacher %s", action.capitalize(), teacher_id)

    def archive(self, teacher_id: str) -> None:
        self._set_archive_state(teacher_id, True)

    def unarchive(self, teacher_id: str) -> None:
        self._set_archive_state(teacher_id, False)


class SupervisionRepository(_Repository):
    """Supervisions of one kind; each kind lives in its own collection."""

    def __init__(self, db: Optional[Database], kind: SupervisionKind, teachers: Optional[TeacherRepository] = None):
        super().__init__(db)
        self.kind = SupervisionKind(kind)
        self.collection = self.kind.collection
        self.teachers = teachers or TeacherRepository(db)

    def list(self, unit_filter: Optional[str] = None) -> List[Supervision]:
        supervisions = _parse(Supervision, self._fetch(f"{self.kind.value} supervisions"))
        if unit_filter:
            supervisions = [s for s in supervisions if s.unit == unit_filter]
        return supervisions

    def list_for_teacher(self, teacher_id: str) -> List[Supervision]:
        docs = self._fetch(f"{self.kind.value} supervisions", {"teacherId": teacher_id})
        return _parse(Supervision, docs)

    def save(self, supervision: Supervision) -> str:
        """
        Persist a supervision.

        The grade is always recomputed from the score. A missing unit is
        copied from the referenced teacher; when that teacher does not
        exist the unit stays unset.
        """
        supervision.grade = calculate_grade(supervision.score)
        if not supervision.unit:
            teacher = self.teachers.get(supervision.teacherId)
            if teacher:
                supervision.unit = teacher.unit

        with _writing(f"saving {self.kind.value} supervision"):
            if not supervision.id:
                data = supervision.model_dump(exclude={"id"}, exclude_none=True)
                supervision.id = create_document(self.db, self.collection, data)
                return supervision.id
            fields = supervision.model_dump(exclude={"id"}, exclude_unset=True)
            fields["grade"] = supervision.grade
            if supervision.unit:
                fields["unit"] = supervision.unit
            matched = update_document(self.db, self.collection, supervision.id, fields)
        if not matched:
            raise NotFound("Supervision not found")
        return supervision.id

    def remove(self, supervision_id: str) -> None:
        self._remove(supervision_id, f"{self.kind.value} supervision")


class HeadmasterNoteRepository(_Repository):
    collection = HEADMASTER_NOTES

    def list(self) -> List[HeadmasterNote]:
        docs = [d for d in self._fetch("headmaster notes") if d.get("id") and d["id"].strip()]
        return _parse(HeadmasterNote, docs)

    def list_for_teacher(self, teacher_id: str) -> List[HeadmasterNote]:
        return [n for n in self.list() if n.teacherId == teacher_id]

    def save(self, note: HeadmasterNote) -> str:
        if note.id is None or note.id.strip() == "":
            with _writing("saving headmaster note"):
                note.id = create_document(self.db, self.collection, note.model_dump(exclude={"id"}))
            return note.id

        if not is_valid_id(note.id) or to_object_id(note.id) is None:
            raise InvalidArgument(f"Invalid note id: {note.id!r}")
        with _writing("saving headmaster note"):
            matched = update_document(
                self.db, self.collection, note.id, note.model_dump(exclude={"id"}, exclude_unset=True)
            )
        if not matched:
            raise NotFound("Headmaster note not found")
        return note.id

    def remove(self, note_id) -> None:
        if not is_valid_id(note_id) or to_object_id(note_id) is None:
            raise InvalidArgument("Invalid document ID provided for deletion")
        self._remove(note_id, "headmaster note")

    @staticmethod
    def categories() -> dict:
        return {"case": list(CASE_CATEGORIES), "achievement": list(ACHIEVEMENT_CATEGORIES)}
