"""Tests for EditBuffer and EditBufferSynchronizer."""
from diligencestate import EditBuffer, EditBufferSynchronizer, SyncOutcome, Tier


def make_buffer(values=None, entity_id='c1'):
    return EditBuffer(Tier.CHILD, entity_id=entity_id, values=values or {'name': 'Billing', 'type': 'SaaS'})


class TestEditBuffer:

    def test_new_buffer_is_clean(self):
        buffer = make_buffer()
        assert not buffer.is_dirty
        assert buffer.dirty_fields == set()

    def test_update_marks_field_dirty(self):
        buffer = make_buffer()
        buffer.update_parameter('name', 'Billing v2')
        assert buffer.is_dirty
        assert buffer.dirty_fields == {'name'}
        assert buffer.saved_parameters['name'] == 'Billing'

    def test_writing_back_saved_value_clears_dirty(self):
        buffer = make_buffer()
        buffer.update_parameter('name', 'Billing v2')
        buffer.update_parameter('name', 'Billing')
        assert not buffer.is_dirty

    def test_reset_parameter(self):
        buffer = make_buffer()
        buffer.update_parameter('name', 'x')
        buffer.update_parameter('extra', 'y')
        buffer.reset_parameter('name')
        buffer.reset_parameter('extra')
        assert buffer.parameters == {'name': 'Billing', 'type': 'SaaS'}
        assert not buffer.is_dirty

    def test_restore_saved_discards_all_edits(self):
        buffer = make_buffer()
        buffer.update_parameter('name', 'x')
        buffer.update_parameter('type', 'OnPrem')
        buffer.restore_saved()
        assert buffer.get_current_values() == {'name': 'Billing', 'type': 'SaaS'}

    def test_mark_saved_moves_baseline(self):
        buffer = make_buffer()
        buffer.update_parameter('name', 'x')
        buffer.mark_saved()
        assert not buffer.is_dirty
        assert buffer.saved_parameters['name'] == 'x'

    def test_rebase_keeps_live_edits(self):
        buffer = make_buffer()
        buffer.update_parameter('name', 'typed')
        buffer.rebase({'name': 'Billing', 'type': 'Hybrid'})
        assert buffer.parameters['name'] == 'typed'
        assert buffer.dirty_fields == {'name', 'type'}

    def test_values_are_copied(self):
        values = {'tech_stack': ['python']}
        buffer = make_buffer(values)
        values['tech_stack'].append('go')
        assert buffer.parameters['tech_stack'] == ['python']
        buffer.get_current_values()['tech_stack'].append('rust')
        assert buffer.parameters['tech_stack'] == ['python']

    def test_saved_values_are_copied(self):
        buffer = make_buffer({'tech_stack': ['python']})
        buffer.saved_parameters['tech_stack'].append('go')
        assert buffer.saved_parameters['tech_stack'] == ['python']
        assert not buffer.is_dirty

    def test_state_changed_callbacks(self):
        buffer = make_buffer()
        calls = []
        callback = lambda: calls.append(buffer.is_dirty)
        buffer.on_state_changed(callback)
        buffer.on_state_changed(callback)
        buffer.update_parameter('name', 'x')
        buffer.update_parameter('name', 'y')
        assert calls == [True, True]

        buffer.off_state_changed(callback)
        buffer.restore_saved()
        assert calls == [True, True]

    def test_failing_callback_does_not_break_edits(self):
        buffer = make_buffer()

        def boom():
            raise RuntimeError("listener failed")

        buffer.on_state_changed(boom)
        buffer.update_parameter('name', 'x')
        assert buffer.parameters['name'] == 'x'

    def test_snapshot_round_trip(self):
        buffer = make_buffer()
        buffer.update_parameter('name', 'typed')
        snapshot = buffer.to_snapshot()
        baseline = buffer.baseline_snapshot()

        other = EditBuffer(Tier.CHILD)
        other.apply_snapshot(snapshot)
        assert other.entity_id == 'c1'
        assert other.parameters['name'] == 'typed'
        assert other.dirty_fields == {'name'}

        other.apply_snapshot(baseline)
        assert other.parameters['name'] == 'Billing'
        assert not other.is_dirty


class TestEditBufferSynchronizer:

    def setup_method(self):
        self.buffers = {Tier.CHILD: EditBuffer(Tier.CHILD)}
        self.sync = EditBufferSynchronizer(self.buffers)

    @property
    def buffer(self):
        return self.buffers[Tier.CHILD]

    def test_new_selection_populates_buffer(self):
        outcome = self.sync.sync(Tier.CHILD, 'c1', {'name': 'Billing'})
        assert outcome is SyncOutcome.ENTITY_CHANGED
        assert self.buffer.entity_id == 'c1'
        assert self.buffer.parameters == {'name': 'Billing'}

    def test_same_values_are_unchanged(self):
        self.sync.sync(Tier.CHILD, 'c1', {'name': 'Billing'})
        assert self.sync.sync(Tier.CHILD, 'c1', {'name': 'Billing'}) is SyncOutcome.UNCHANGED

    def test_refresh_overwrites_clean_buffer(self):
        self.sync.sync(Tier.CHILD, 'c1', {'name': 'Billing'})
        outcome = self.sync.sync(Tier.CHILD, 'c1', {'name': 'Billing (renamed)'})
        assert outcome is SyncOutcome.REFRESHED
        assert self.buffer.parameters == {'name': 'Billing (renamed)'}

    def test_refresh_keeps_dirty_edits(self):
        self.sync.sync(Tier.CHILD, 'c1', {'name': 'Billing', 'type': 'SaaS'})
        self.buffer.update_parameter('name', 'typed')

        outcome = self.sync.sync(Tier.CHILD, 'c1', {'name': 'Billing', 'type': 'Hybrid'})
        assert outcome is SyncOutcome.KEPT_DIRTY
        assert self.buffer.parameters == {'name': 'typed', 'type': 'SaaS'}
        assert self.buffer.saved_parameters == {'name': 'Billing', 'type': 'Hybrid'}

    def test_dirty_buffer_is_replaced_when_entity_changes(self):
        self.sync.sync(Tier.CHILD, 'c1', {'name': 'Billing'})
        self.buffer.update_parameter('name', 'typed')
        outcome = self.sync.sync(Tier.CHILD, 'c2', {'name': 'Portal'})
        assert outcome is SyncOutcome.ENTITY_CHANGED
        assert self.buffer.parameters == {'name': 'Portal'}
        assert not self.buffer.is_dirty

    def test_no_selection_clears(self):
        self.sync.sync(Tier.CHILD, 'c1', {'name': 'Billing'})
        assert self.sync.sync(Tier.CHILD, None, None) is SyncOutcome.CLEARED
        assert self.buffer.entity_id is None
        assert self.buffer.parameters == {}
        assert self.sync.sync(Tier.CHILD, None, None) is SyncOutcome.UNCHANGED

    def test_creating_ignores_canonical_data(self):
        self.sync.sync(Tier.CHILD, 'c1', {'name': 'Billing'})
        outcome = self.sync.sync(Tier.CHILD, 'c2', {'name': 'Portal'}, is_creating=True)
        assert outcome is SyncOutcome.SUSPENDED
        assert self.buffer.entity_id == 'c1'

    def test_commits_buffer(self):
        assert SyncOutcome.ENTITY_CHANGED.commits_buffer
        assert SyncOutcome.REFRESHED.commits_buffer
        assert SyncOutcome.CLEARED.commits_buffer
        assert not SyncOutcome.UNCHANGED.commits_buffer
        assert not SyncOutcome.KEPT_DIRTY.commits_buffer
        assert not SyncOutcome.SUSPENDED.commits_buffer
