"""
Tests del ciclo de vida completo de una reserva
"""
import pytest
from freezegun import freeze_time

from sitterbook.errors import InvalidTransition, NotFound, NotPermitted, PersistenceFailure, SchedulingConflict
from sitterbook.schemas.booking import BookingStatus
from sitterbook.schemas.care_request import RequestStatus
from sitterbook.services import notifications as events
from conftest import NOW, OWNER, SITTER_A, SITTER_B, SITTER_C, june


# ---------- Candidaturas ----------

async def test_apply_creates_pending_booking(service, store, notifier, post_request):
    req = await post_request(june(10), june(15), budget=120)
    res = await service.apply_for_request(req.id, SITTER_A, "Vivo cerca")

    assert res.ok
    b = res.booking
    assert b.status == BookingStatus.pending
    assert b.owner_id == OWNER and b.sitter_id == SITTER_A
    assert (b.start_date, b.end_date) == (req.start_date, req.end_date)
    assert b.total_amount == 120
    assert (await store.get_booking(b.id)).status == BookingStatus.pending
    notifier.notify.assert_awaited_once()
    assert notifier.notify.await_args.args[0] == events.BOOKING_APPLICATION
    assert notifier.notify.await_args.args[2] == OWNER


async def test_apply_unknown_request(service):
    res = await service.apply_for_request("nope", SITTER_A)
    assert isinstance(res.error, NotFound)


async def test_owner_cannot_apply_to_own_request(service, post_request):
    req = await post_request(june(10), june(15))
    res = await service.apply_for_request(req.id, OWNER)
    assert isinstance(res.error, NotPermitted)


async def test_duplicate_live_application_is_refused(service, post_request):
    req = await post_request(june(10), june(15))
    first = await service.apply_for_request(req.id, SITTER_A)
    again = await service.apply_for_request(req.id, SITTER_A)

    assert isinstance(again.error, InvalidTransition)
    assert again.error.booking_id == first.booking.id

    # Tras rechazarla puede volver a intentarlo
    await service.reject(first.booking.id, OWNER, "Otra vez será")
    assert (await service.apply_for_request(req.id, SITTER_A)).ok


async def test_apply_requires_open_request(service, confirmed_booking, store):
    booking = await confirmed_booking(june(10), june(15))
    res = await service.apply_for_request(booking.request_id, SITTER_B)
    assert isinstance(res.error, InvalidTransition)


# ---------- Aceptar ----------

async def test_accept_confirms_and_syncs_request(service, store, notifier, post_request):
    req = await post_request(june(10), june(15))
    applied = await service.apply_for_request(req.id, SITTER_A)
    res = await service.accept(applied.booking.id, OWNER)

    assert res.ok
    assert res.booking.status == BookingStatus.confirmed
    assert res.booking.accepted_at is not None
    assert (await store.get_request(req.id)).status == RequestStatus.in_progress
    events_sent = [c.args[0] for c in notifier.notify.await_args_list]
    assert events.BOOKING_ACCEPTED in events_sent


async def test_touching_range_accepts_overlapping_range_conflicts(service, confirmed_booking, post_request):
    await confirmed_booking(june(10), june(15))

    touching = await post_request(june(15), june(20))
    b1 = (await service.apply_for_request(touching.id, SITTER_A)).booking
    assert (await service.accept(b1.id, OWNER)).ok

    overlapping = await post_request(june(12), june(18))
    b2 = (await service.apply_for_request(overlapping.id, SITTER_A)).booking
    res = await service.accept(b2.id, OWNER)
    assert isinstance(res.error, SchedulingConflict)
    assert res.error.sitter_id == SITTER_A
    assert res.error.conflicting_ids
    assert (await service.get_booking(b2.id)).status == BookingStatus.pending


async def test_accept_only_by_request_owner(service, post_request):
    req = await post_request(june(10), june(15))
    b = (await service.apply_for_request(req.id, SITTER_A)).booking
    res = await service.accept(b.id, SITTER_A)
    assert isinstance(res.error, NotPermitted)


async def test_accept_twice_is_invalid(service, confirmed_booking):
    booking = await confirmed_booking(june(10), june(15))
    res = await service.accept(booking.id, OWNER)
    assert isinstance(res.error, InvalidTransition)
    assert res.error.current == BookingStatus.confirmed


async def test_accept_unknown_booking(service):
    res = await service.accept("missing", OWNER)
    assert isinstance(res.error, NotFound)
    assert not res.ok


async def test_second_accept_on_same_request_is_refused(service, store, post_request):
    req = await post_request(june(10), june(15))
    a = (await service.apply_for_request(req.id, SITTER_A)).booking
    b = (await service.apply_for_request(req.id, SITTER_B)).booking

    assert (await service.accept(a.id, OWNER)).ok
    res = await service.accept(b.id, OWNER)
    assert isinstance(res.error, InvalidTransition)
    # B sigue pendiente hasta que el flujo la rechace
    assert (await store.get_booking(b.id)).status == BookingStatus.pending
    # La agenda de B no quedó reservada
    assert await store.claim_slot(SITTER_B, "otra", june(10), june(15))


async def test_calendar_claim_blocks_even_if_check_passed(service, store, post_request):
    """Simula la carrera: otra instancia reservó la agenda entre la comprobación y la escritura."""
    req = await post_request(june(10), june(15))
    b = (await service.apply_for_request(req.id, SITTER_A)).booking
    assert await store.claim_slot(SITTER_A, "de-otra-instancia", june(12), june(14))

    res = await service.accept(b.id, OWNER)
    assert isinstance(res.error, SchedulingConflict)
    assert (await store.get_request(req.id)).status == RequestStatus.open


async def test_lost_booking_write_undoes_claims(service, store, post_request, monkeypatch):
    req = await post_request(june(10), june(15))
    b = (await service.apply_for_request(req.id, SITTER_A)).booking

    async def lost(booking, expected_status):
        return False
    monkeypatch.setattr(store, "update_booking", lost)

    res = await service.accept(b.id, OWNER)
    assert isinstance(res.error, InvalidTransition)
    assert (await store.get_request(req.id)).status == RequestStatus.open
    assert await store.claim_slot(SITTER_B, "x", june(10), june(15))
    assert await store.claim_slot(SITTER_A, "y", june(10), june(15))


async def test_storage_failure_after_claim_frees_the_calendar(service, store, post_request, monkeypatch):
    req = await post_request(june(10), june(15))
    b = (await service.apply_for_request(req.id, SITTER_A)).booking

    async def down(*args, **kwargs):
        raise PersistenceFailure("Mongo no responde")
    monkeypatch.setattr(store, "update_request_status", down)
    with pytest.raises(PersistenceFailure):
        await service.accept(b.id, OWNER)
    monkeypatch.undo()

    assert (await store.get_booking(b.id)).status == BookingStatus.pending
    # Sin hueco fantasma: otra reserva del mismo cuidador en esas fechas entra
    other = await post_request(june(12), june(13))
    b2 = (await service.apply_for_request(other.id, SITTER_A)).booking
    assert not await service.has_conflict(SITTER_A, june(12), june(13))
    res = await service.accept(b2.id, OWNER)
    assert res.ok, res.error


async def test_storage_failure_on_booking_write_reopens_request(service, store, post_request, monkeypatch):
    req = await post_request(june(10), june(15))
    b = (await service.apply_for_request(req.id, SITTER_A)).booking

    async def down(booking, expected_status):
        raise PersistenceFailure("Mongo no responde")
    monkeypatch.setattr(store, "update_booking", down)
    with pytest.raises(PersistenceFailure):
        await service.accept(b.id, OWNER)
    monkeypatch.undo()

    assert (await store.get_request(req.id)).status == RequestStatus.open
    assert (await store.get_booking(b.id)).status == BookingStatus.pending
    res = await service.accept(b.id, OWNER)
    assert res.ok, res.error


async def test_reminder_scheduled_day_before(service, notifier, post_request):
    with freeze_time(NOW, real_asyncio=True):
        req = await post_request(june(10, 9), june(15))
        b = (await service.apply_for_request(req.id, SITTER_A)).booking
        assert (await service.accept(b.id, OWNER)).ok

    notifier.schedule.assert_awaited_once()
    event, booking, recipient, at = notifier.schedule.await_args.args
    assert event == events.BOOKING_REMINDER
    assert recipient == SITTER_A
    assert at == june(9, 9)


async def test_no_reminder_when_start_is_too_close(service, notifier, post_request):
    with freeze_time("2026-06-09 12:00:00", real_asyncio=True):
        req = await post_request(june(10, 9), june(15))
        b = (await service.apply_for_request(req.id, SITTER_A)).booking
        assert (await service.accept(b.id, OWNER)).ok
    notifier.schedule.assert_not_awaited()


async def test_notifier_failure_does_not_break_accept(service, notifier, store, post_request):
    notifier.notify.side_effect = RuntimeError("push caído")
    req = await post_request(june(10), june(15))
    b = (await service.apply_for_request(req.id, SITTER_A)).booking
    res = await service.accept(b.id, OWNER)

    assert res.ok
    assert (await store.get_booking(b.id)).status == BookingStatus.confirmed


# ---------- Rechazar / cancelar ----------

async def test_reject_keeps_request_open(service, store, post_request):
    req = await post_request(june(10), june(15))
    b = (await service.apply_for_request(req.id, SITTER_A)).booking
    res = await service.reject(b.id, OWNER, "Buscamos a alguien con jardín")

    assert res.ok
    assert res.booking.status == BookingStatus.rejected
    assert res.booking.cancellation_reason == "Buscamos a alguien con jardín"
    assert res.booking.cancelled_at is not None
    assert (await store.get_request(req.id)).status == RequestStatus.open


async def test_sitter_cannot_reject(service, post_request):
    req = await post_request(june(10), june(15))
    b = (await service.apply_for_request(req.id, SITTER_A)).booking
    assert isinstance((await service.reject(b.id, SITTER_A)).error, NotPermitted)


async def test_cancel_confirmed_reopens_request_and_frees_dates(service, store, post_request):
    req = await post_request(june(10), june(15))
    a = (await service.apply_for_request(req.id, SITTER_A)).booking
    assert (await service.accept(a.id, OWNER)).ok

    res = await service.cancel(a.id, SITTER_A, "Me he puesto enfermo")
    assert res.ok
    assert res.booking.status == BookingStatus.cancelled
    assert (await store.get_request(req.id)).status == RequestStatus.open
    assert await service.is_available(SITTER_A, june(10), june(15))

    # Un tercer cuidador puede optar y ser aceptado para esas fechas
    c = await service.apply_for_request(req.id, SITTER_C)
    assert c.ok
    assert (await service.accept(c.booking.id, OWNER)).ok
    assert (await store.get_request(req.id)).status == RequestStatus.in_progress


async def test_cancel_pending_leaves_request_alone(service, store, post_request):
    req = await post_request(june(10), june(15))
    a = (await service.apply_for_request(req.id, SITTER_A)).booking
    b = (await service.apply_for_request(req.id, SITTER_B)).booking
    assert (await service.accept(a.id, OWNER)).ok

    res = await service.cancel(b.id, SITTER_B, "Ya no puedo")
    assert res.ok
    # La solicitud sigue en curso con la reserva de A
    assert (await store.get_request(req.id)).status == RequestStatus.in_progress


async def test_cancel_notifies_other_party(service, notifier, confirmed_booking):
    booking = await confirmed_booking(june(10), june(15))
    notifier.notify.reset_mock()
    await service.cancel(booking.id, OWNER, "Cambio de planes")

    event, _, recipient = notifier.notify.await_args.args
    assert event == events.BOOKING_CANCELLED
    assert recipient == SITTER_A


async def test_stranger_cannot_cancel(service, confirmed_booking):
    booking = await confirmed_booking(june(10), june(15))
    assert isinstance((await service.cancel(booking.id, "intruso")).error, NotPermitted)


# ---------- Empezar / completar ----------

async def test_full_lifecycle_with_time_guards(service, store, post_request):
    with freeze_time(NOW, real_asyncio=True) as frozen:
        req = await post_request(june(10), june(15))
        b = (await service.apply_for_request(req.id, SITTER_A)).booking
        assert (await service.accept(b.id, OWNER)).ok

        early = await service.start(b.id, SITTER_A)
        assert isinstance(early.error, InvalidTransition)

        frozen.move_to("2026-06-10 08:00:00")
        started = await service.start(b.id, SITTER_A)
        assert started.ok and started.booking.status == BookingStatus.in_progress

        # En curso ya no se puede cancelar
        assert isinstance((await service.cancel(b.id, OWNER)).error, InvalidTransition)

        not_yet = await service.complete(b.id, SITTER_A)
        assert isinstance(not_yet.error, InvalidTransition)
        assert (await store.get_booking(b.id)).status == BookingStatus.in_progress

        frozen.move_to("2026-06-15 00:00:00")
        done = await service.complete(b.id, SITTER_A)
        assert done.ok
        assert done.booking.status == BookingStatus.completed
        assert done.booking.completed_at == june(15)
        assert (await store.get_request(req.id)).status == RequestStatus.completed

        # Completada libera la agenda
        assert await service.is_available(SITTER_A, june(10), june(15))
        history = await service.booking_history(SITTER_A)
        assert [h.id for h in history] == [b.id]


async def test_only_sitter_completes(service, confirmed_booking):
    with freeze_time(NOW, real_asyncio=True) as frozen:
        booking = await confirmed_booking(june(10), june(15))
        frozen.move_to("2026-06-11 00:00:00")
        assert isinstance((await service.start(booking.id, OWNER)).error, NotPermitted)
        assert (await service.start(booking.id, SITTER_A)).ok
        frozen.move_to("2026-06-16 00:00:00")
        assert isinstance((await service.complete(booking.id, OWNER)).error, NotPermitted)


@pytest.mark.parametrize("status_path,command,legal", [
    ([], "complete", False),
    (["accept"], "complete", False),
    (["accept", "start"], "complete", True),
    (["accept", "start"], "cancel", False),
    ([], "cancel", True),
    (["accept"], "cancel", True),
    (["reject"], "cancel", False),
])
async def test_command_legality_by_state(service, post_request, status_path, command, legal):
    with freeze_time("2026-06-20 00:00:00", real_asyncio=True):
        req = await post_request(june(10), june(15))
        b = (await service.apply_for_request(req.id, SITTER_A)).booking
        actors = {"accept": OWNER, "reject": OWNER, "start": SITTER_A, "complete": SITTER_A, "cancel": SITTER_A}
        for step in status_path:
            assert (await getattr(service, step)(b.id, actors[step])).ok
        res = await getattr(service, command)(b.id, actors[command])
        assert res.ok is legal
