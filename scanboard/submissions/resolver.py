"""
Booklet Resolver
Maps a decoded QR identity to a booklet, binding one on first scan
when class, student and material all exist ("resolve-or-bind").

Binding and the class-scope check are separate steps:
    resolve_or_bind()         -> BoundBooklet | NotFoundOutcome
    check_class_membership()  -> raises WrongClassScan
"""

import logging
from typing import Union
from pydantic import BaseModel

from scanboard.submissions import qr_codec
from scanboard.submissions.audit import log_audit
from scanboard.submissions.errors import Conflict, DuplicateRecord, NotFound, WrongClassScan
from scanboard.submissions.models import Booklet, Material, Student, generate_id
from scanboard.submissions.outcomes import NotFoundOutcome, ParsedIdentity
from scanboard.submissions.qr_codec import IdentityTuple
from scanboard.submissions.store import RecordStore

logger = logging.getLogger(__name__)


class BoundBooklet(BaseModel):
    """Booklet together with the student and material it binds"""
    booklet: Booklet
    student: Student
    material: Material


async def _load_binding(store: RecordStore, booklet: Booklet) -> BoundBooklet:
    student = await store.get_student(booklet.student_id)
    material = await store.get_material(booklet.material_id)
    if not student or not material:
        raise NotFound(f"Booklet {booklet.booklet_id} points to a missing student or material")
    return BoundBooklet(booklet=booklet, student=student, material=material)


async def _bind(
    store: RecordStore,
    identity: IdentityTuple,
    student: Student,
    material: Material
) -> BoundBooklet:
    booklet = Booklet(
        booklet_id=generate_id("BKL"),
        student_id=student.student_id,
        material_id=material.material_id,
        qr_payload=identity.normalized_payload
    )
    try:
        await store.insert_booklet(booklet)
    except DuplicateRecord:
        # Another scan of the same QR won the race; use its booklet
        existing = await store.find_booklet_by_payload(identity.normalized_payload)
        if existing is None:
            raise Conflict(
                f"Student {student.number} already has a {material.code} booklet with a different QR."
            )
        logger.info("Concurrent bind of %s, reusing %s", identity.normalized_payload, existing.booklet_id)
        return await _load_binding(store, existing)

    logger.info(
        "Bound booklet %s: student=%s material=%s payload=%s",
        booklet.booklet_id, student.student_id, material.code, booklet.qr_payload
    )
    return BoundBooklet(booklet=booklet, student=student, material=material)


def _not_found(identity: IdentityTuple) -> NotFoundOutcome:
    return NotFoundOutcome(
        parsed=ParsedIdentity(
            year=identity.year,
            class_code=identity.class_code,
            student_number=identity.student_number,
            material_code=identity.material_code,
            normalized_payload=identity.normalized_payload
        ),
        can_create_booklet=False
    )


async def resolve_or_bind(
    store: RecordStore,
    identity: IdentityTuple,
    context_class_id: str
) -> Union[BoundBooklet, NotFoundOutcome]:
    """
    Find the booklet for a scanned identity, creating the binding when possible

    Raises:
        WrongClassScan: the identity's class exists but is not context_class_id
    """
    booklet = await store.find_booklet_by_payload(identity.normalized_payload)
    if booklet:
        return await _load_binding(store, booklet)

    school_class = await store.find_class(identity.year, identity.class_code)
    if school_class and school_class.class_id != context_class_id:
        raise WrongClassScan()

    material = await store.find_material(identity.material_code)
    student = (
        await store.find_student(school_class.class_id, identity.student_number)
        if school_class else None
    )

    if school_class and student and material:
        return await _bind(store, identity, student, material)

    logger.info(
        "No booklet for %s (class=%s student=%s material=%s)",
        identity.normalized_payload, bool(school_class), bool(student), bool(material)
    )
    return _not_found(identity)


def check_class_membership(bound: BoundBooklet, context_class_id: str) -> None:
    if bound.student.class_id != context_class_id:
        raise WrongClassScan()


async def resolve(
    store: RecordStore,
    identity: IdentityTuple,
    context_class_id: str
) -> Union[BoundBooklet, NotFoundOutcome]:
    result = await resolve_or_bind(store, identity, context_class_id)
    if isinstance(result, BoundBooklet):
        check_class_membership(result, context_class_id)
    return result

# ==================== RESCUE BINDING ====================

async def create_booklet(
    store: RecordStore,
    student_id: str,
    material_id: str,
    payload: str
) -> Booklet:
    """
    Operator binds a booklet by hand after a scan came back not found

    Raises:
        MalformedPayload: payload is not a booklet QR
        NotFound: student or material missing
        Conflict: payload or (student, material) already bound
    """
    identity = qr_codec.decode(payload)
    normalized = identity.normalized_payload

    student = await store.get_student(student_id)
    if not student:
        raise NotFound("Student not found")

    material = await store.get_material(material_id)
    if not material:
        raise NotFound("Material not found")

    if (
        await store.find_booklet_by_payload(normalized)
        or await store.find_booklet_for(student_id, material_id)
    ):
        raise Conflict("This booklet is already registered.")

    booklet = Booklet(
        booklet_id=generate_id("BKL"),
        student_id=student_id,
        material_id=material_id,
        qr_payload=normalized
    )
    try:
        await store.insert_booklet(booklet)
    except DuplicateRecord:
        raise Conflict("This booklet is already registered.")

    await log_audit(
        store, "rescue_binding", "booklet", booklet.booklet_id,
        {"student_id": student_id, "material_id": material_id, "qr_payload": normalized}
    )
    logger.info("Rescue binding %s for student %s", booklet.booklet_id, student_id)
    return booklet

# ==================== PROVISIONING ====================

async def provision_class(store: RecordStore, class_id: str) -> int:
    """
    Create a checksummed booklet for every student x active material
    of the class that does not have one yet

    Returns:
        Number of booklets created
    """
    school_class = await store.get_class(class_id)
    if not school_class:
        raise NotFound("Class not found")

    students = await store.list_students(class_id)
    materials = await store.list_active_materials()

    created = 0
    for student in students:
        for material in materials:
            if await store.find_booklet_for(student.student_id, material.material_id):
                continue
            payload = qr_codec.encode(
                school_class.year, school_class.class_code, student.number, material.code
            )
            booklet = Booklet(
                booklet_id=generate_id("BKL"),
                student_id=student.student_id,
                material_id=material.material_id,
                qr_payload=payload
            )
            try:
                await store.insert_booklet(booklet)
            except DuplicateRecord:
                logger.warning("Skipped provisioning %s: already bound", payload)
                continue
            created += 1

    await log_audit(store, "provision_booklets", "class", class_id, {"created": created})
    logger.info("Provisioned %d booklets for class %s", created, class_id)
    return created
