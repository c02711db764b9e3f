"""End-to-end scenarios of the editing screen."""
import asyncio
import copy

from diligencestate import EntityKind, Record, SyncOutcome, Tier, Transition, pick_default


def test_reset_vs_refresh(engine, record_payload):
    engine.select_child('c2')

    record_payload['children'][0]['fields']['name'] = 'Portal (renamed)'
    assert engine.load(Record.from_dict(record_payload)) is Transition.RECORD_REFRESHED
    assert engine.state.selected_child_id == 'c2'
    assert engine.buffer(Tier.CHILD).parameters['name'] == 'Portal (renamed)'

    other = Record.from_dict({'id': 'R2', 'children': [{'id': 'd1'}]})
    assert engine.load(other) is Transition.RECORD_CHANGED
    assert engine.record_id == 'R2'
    assert engine.state.selected_child_id == 'd1'
    assert engine.snapshots.live.record_id == 'R2'
    assert engine.buffer(Tier.GRANDCHILD).entity_id is None


def test_cascade_clearing(backend, engine):
    payload = backend.payload('R1')
    payload['children'] = [c for c in payload['children'] if c['id'] != 'c1']
    backend.add_record(payload)

    asyncio.run(engine.refresh())

    assert engine.state.selected_child_id is None
    assert engine.state.selected_grandchild_id is None
    assert engine.buffer(Tier.CHILD).entity_id is None
    assert engine.buffer(Tier.GRANDCHILD).entity_id is None


def test_auto_select_fires_once(engine):
    engine.select_child(None)
    engine.navigate(Tier.CHILD)
    assert engine.state.selected_child_id is None
    assert engine.auto_select() is False
    assert engine.state.selected_child_id is None


def test_cancel_is_exact(engine):
    engine.update_field(Tier.RECORD, 'name', 'Acme (draft)')
    engine.update_field(Tier.CHILD, 'main_use_case', 'Payments')
    engine.update_field(Tier.GRANDCHILD, 'redundancy', 'high')
    engine.set_include_archived(False)
    assert engine.is_dirty

    assert engine.cancel() is True

    assert engine.buffer(Tier.RECORD).parameters['name'] == 'Acme Software'
    assert engine.buffer(Tier.CHILD).parameters['main_use_case'] == 'Invoicing'
    assert engine.buffer(Tier.GRANDCHILD).parameters['redundancy'] == 'geo-redundant'
    assert engine.state.include_archived is True
    assert engine.state.selected_child_id == 'c1'
    assert engine.state.selected_grandchild_id == 'g1-prod'
    assert not engine.is_dirty


def test_cancel_returns_to_last_committed_selection(engine):
    engine.select_child('c2')
    engine.navigate(Tier.GRANDCHILD)
    engine.update_field(Tier.CHILD, 'name', 'Portal (draft)')
    engine.update_field(Tier.RECORD, 'country', 'DE')

    engine.cancel()

    assert engine.state.selected_child_id == 'c2'
    assert engine.state.selected_grandchild_id == 'g2-prod'
    assert engine.state.active_tier is Tier.GRANDCHILD
    assert engine.buffer(Tier.CHILD).parameters['name'] == 'Portal'
    assert engine.buffer(Tier.RECORD).parameters['country'] == 'FR'


def test_cancel_leaves_create_drafts_alone(engine):
    engine.begin_create(Tier.CHILD)
    engine.update_field(Tier.CHILD, 'name', 'New solution')
    engine.cancel()
    assert engine.is_creating(Tier.CHILD)
    assert engine.draft(Tier.CHILD).parameters['name'] == 'New solution'


def test_redundant_sync_keeps_snapshot(engine):
    live = engine.snapshots.live.id
    outcomes = engine._sync_buffers(label="re-render")
    assert all(outcome is SyncOutcome.UNCHANGED for outcome in outcomes.values())
    assert engine.snapshots.live.id == live


def test_dirty_edits_survive_refresh(backend, engine):
    engine.update_field(Tier.CHILD, 'name', 'Billing (typing)')
    asyncio.run(backend.update(EntityKind.CHILD, 'c1', {'main_use_case': 'Invoicing & dunning'}))

    asyncio.run(engine.refresh())

    buffer = engine.buffer(Tier.CHILD)
    assert buffer.parameters['name'] == 'Billing (typing)'
    assert buffer.saved_parameters['main_use_case'] == 'Invoicing & dunning'


def test_archive_selected_child_while_hidden(make_engine, hidden_archived_config):
    """Children [c2 (no createdAt), c1 (2024-01-01)]: default c1; archiving c1
    clears the selection after refresh, then auto-select picks c2."""
    engine = make_engine(config=hidden_archived_config)
    assert pick_default(engine.visible_children()).id == 'c1'
    assert engine.state.selected_child_id == 'c1'
    engine.navigate(Tier.CHILD)

    result = asyncio.run(engine.archive(Tier.CHILD, 'c1'))

    assert result.ok
    assert engine.state.selected_child_id is None
    assert engine.state.selected_grandchild_id is None
    assert [c.id for c in engine.visible_children()] == ['c2']

    assert engine.auto_select() is True
    assert engine.state.selected_child_id == 'c2'
    assert engine.buffer(Tier.CHILD).entity_id == 'c2'


def test_archived_child_stays_selected_when_archived_items_are_shown(engine):
    asyncio.run(engine.archive(Tier.CHILD, 'c1'))
    assert engine.state.selected_child_id == 'c1'
    assert engine.selected_child().archived is True

    engine.set_include_archived(False)
    assert engine.state.selected_child_id is None


def test_changed_notifications(engine):
    events = []

    def listener():
        events.append(engine.state.selected_child_id)

    engine.on_changed(listener)
    engine.select_child('c2')
    engine.select_child('not-there')
    assert events == ['c2']

    engine.off_changed(listener)
    engine.select_child('c1')
    assert events == ['c2']


def test_edit_without_selection_is_ignored(engine):
    engine.select_child(None)
    assert engine.update_field(Tier.CHILD, 'name', 'orphan') is False
    assert engine.buffer(Tier.CHILD).parameters == {}


def test_edits_do_not_touch_background_data(engine):
    before = copy.deepcopy(engine.record.to_dict())
    engine.update_field(Tier.CHILD, 'name', 'Billing v2')
    assert engine.record.to_dict() == before
