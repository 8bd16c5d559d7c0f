import threading
from unittest import mock

import pytest
from sqlalchemy.exc import OperationalError

from ingress import create_app
from ingress.exceptions import TransientStoreFailure
from ingress.extensions import db
from ingress.models.participant import Participant
from ingress.services.redemption_service import RedemptionService, DenialReason
from ingress.services.roster_store import RosterStore, CheckInStatus
from ingress.services.token_codec import TokenCodec

from conftest import seed_event


def _participant(participant_id):
    return db.session.get(Participant, participant_id, populate_existing=True)


def test_asha_scenario(app, seeded, codec):
    e1, e2 = seeded.e1, seeded.e2
    asha_id = e1.participants['21CS001']
    token_text = codec.encode(e1.id, asha_id)

    with app.app_context():
        service = RedemptionService.from_config()

        first = service.redeem_raw(token_text, e1.id, e1.name)
        assert first.granted
        assert first.participant['name'] == 'Asha'
        assert first.participant['enrollment'] == '21CS001'
        assert first.participant['checked_in_at'] is not None

        stored = _participant(asha_id)
        assert stored.checked_in is True
        assert stored.checked_in_at is not None

        again = service.redeem_raw(token_text, e1.id, e1.name)
        assert not again.granted
        assert again.reason == DenialReason.ALREADY_CHECKED_IN
        assert again.message == 'Already checked in!'
        assert again.participant['name'] == 'Asha'
        assert again.details['checked_in_at'] == first.participant['checked_in_at']

        elsewhere = service.redeem_raw(token_text, e2.id, e2.name)
        assert not elsewhere.granted
        assert elsewhere.reason == DenialReason.WRONG_EVENT
        assert elsewhere.message == 'QR code is not valid for Hackathon'


def test_wrong_event_never_touches_store(codec):
    store = mock.Mock(spec=RosterStore)
    service = RedemptionService(store, codec)

    result = service.redeem(codec.decode(codec.encode('E1', 'P1')), 'E2')

    assert result.reason == DenialReason.WRONG_EVENT
    store.get_participant.assert_not_called()
    store.check_in.assert_not_called()


def test_bad_signature_is_rejected_before_lookup(codec):
    store = mock.Mock(spec=RosterStore)
    service = RedemptionService(store, codec)
    forged = '{"eventId":"E1","participantId":"P1","signature":"valid"}'

    result = service.redeem_raw(forged, 'E1')

    assert result.reason == DenialReason.INVALID_SIGNATURE
    store.get_participant.assert_not_called()


def test_legacy_mode_accepts_placeholder_signature(app, seeded):
    e1 = seeded.e1
    forged = f'{{"eventId":"{e1.id}","participantId":"{e1.participants["21CS002"]}","signature":"valid"}}'

    with app.app_context():
        service = RedemptionService(RosterStore(), TokenCodec(mode='legacy'))
        result = service.redeem_raw(forged, e1.id)

    assert result.granted
    assert result.participant['name'] == 'Ravi'


def test_malformed_text_is_denied(codec):
    service = RedemptionService(mock.Mock(spec=RosterStore), codec)

    result = service.redeem_raw('hello world', 'E1')

    assert result.reason == DenialReason.MALFORMED_TOKEN
    assert result.to_dict()['error_code'] == 'malformed_token'


def test_unencodable_participant_id_is_denied(codec):
    store = mock.Mock(spec=RosterStore)
    service = RedemptionService(store, codec)
    raw = '{"eventId":"E1","participantId":"\\ud800","signature":"x"}'

    result = service.redeem_raw(raw, 'E1')

    assert result.reason == DenialReason.MALFORMED_TOKEN
    store.get_participant.assert_not_called()


def test_unknown_participant(app, seeded, codec):
    e1 = seeded.e1
    with app.app_context():
        result = RedemptionService.from_config().redeem_raw(codec.encode(e1.id, 'no-such-id'), e1.id)

    assert result.reason == DenialReason.PARTICIPANT_NOT_FOUND
    assert result.message == 'Participant not found'


def test_participant_from_another_event_is_not_found(app, seeded, codec):
    # Ids are scoped by event: a real participant id under the wrong event id
    meera_id = seeded.e2.participants['21CS050']
    e1 = seeded.e1
    with app.app_context():
        result = RedemptionService.from_config().redeem_raw(codec.encode(e1.id, meera_id), e1.id)

    assert result.reason == DenialReason.PARTICIPANT_NOT_FOUND


def test_transient_failure_is_reported(codec):
    store = mock.Mock(spec=RosterStore)
    store.get_participant.return_value = {'id': 'P1', 'name': 'Asha'}
    store.check_in.side_effect = TransientStoreFailure('database is locked')
    service = RedemptionService(store, codec)

    result = service.redeem(codec.decode(codec.encode('E1', 'P1')), 'E1')

    assert not result.granted
    assert result.reason == DenialReason.TRANSIENT_STORE_FAILURE
    assert 'scan again' in result.message


def test_store_retries_operational_errors_then_gives_up(app, seeded):
    e1 = seeded.e1
    with app.app_context():
        store = RosterStore(max_retries=3, retry_delay=0)
        error = OperationalError('UPDATE participant', {}, Exception('database is locked'))

        with mock.patch.object(store, '_check_in_once', side_effect=error) as attempt:
            with pytest.raises(TransientStoreFailure):
                store.check_in(e1.id, e1.participants['21CS001'])

        assert attempt.call_count == 3


def test_store_retry_recovers(app, seeded):
    e1 = seeded.e1
    asha_id = e1.participants['21CS001']
    with app.app_context():
        store = RosterStore(max_retries=3, retry_delay=0)
        real_attempt = store._check_in_once
        calls = []

        def flaky(event_id, participant_id):
            calls.append(participant_id)
            if len(calls) == 1:
                raise OperationalError('UPDATE participant', {}, Exception('deadlock'))
            return real_attempt(event_id, participant_id)

        with mock.patch.object(store, '_check_in_once', side_effect=flaky):
            outcome = store.check_in(e1.id, asha_id)

    assert outcome.status == CheckInStatus.COMMITTED
    assert len(calls) == 2


def test_already_checked_in_is_not_retried(app, seeded):
    e1 = seeded.e1
    asha_id = e1.participants['21CS001']
    with app.app_context():
        store = RosterStore(max_retries=3, retry_delay=0)
        assert store.check_in(e1.id, asha_id).committed

        with mock.patch.object(store, '_check_in_once', wraps=store._check_in_once) as attempt:
            outcome = store.check_in(e1.id, asha_id)

        assert outcome.status == CheckInStatus.ALREADY_CHECKED_IN
        assert attempt.call_count == 1


def test_concurrent_redemptions_admit_exactly_once(tmp_path):
    db_path = tmp_path / 'concurrency.db'
    app = create_app('testing', config_overrides={
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
    })

    with app.app_context():
        event = seed_event(roster=[{'name': 'Asha', 'enrollment': '21CS001', 'email': ''}])
    asha_id = event.participants['21CS001']
    token_text = TokenCodec.from_config(app.config).encode(event.id, asha_id)

    scanners = 8
    barrier = threading.Barrier(scanners)
    results = []
    results_lock = threading.Lock()

    def scan():
        with app.app_context():
            service = RedemptionService.from_config()
            barrier.wait()
            result = service.redeem_raw(token_text, event.id)
            db.session.remove()
        with results_lock:
            results.append(result)

    threads = [threading.Thread(target=scan) for _ in range(scanners)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == scanners
    assert sum(1 for r in results if r.granted) == 1
    assert all(r.reason == DenialReason.ALREADY_CHECKED_IN for r in results if not r.granted)

    with app.app_context():
        assert RosterStore().count_participants(event.id) == (1, 1)
        db.engine.dispose()
