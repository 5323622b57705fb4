"""Inspection session tests"""

import shutil
import tempfile
import unittest
import sys
import os
from pathlib import Path
from unittest import mock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.client import BackendError
from backend.local_store import LocalInspectionStore
from inspection.session import InspectionSession, SaveRejected
from inspection.state import UnknownItemError


class TestInspectionSession(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.store = LocalInspectionStore(self.temp_dir)
        self.changes = []
        self.session = InspectionSession(store=self.store, on_change=self.changes.append)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def _fill_vehicle(self):
        self.session.update_vehicle_info('brand', 'Toyota')
        self.session.update_vehicle_info('model', 'Prado')
        self.session.update_vehicle_info('plate', 'ABC123')

    def test_mutations_mark_dirty_and_notify(self):
        self.assertFalse(self.session.dirty)
        self.session.evaluate_item('Engine', 'Battery', 8)
        self.assertTrue(self.session.dirty)
        self.assertEqual(len(self.changes), 1)
        self.assertEqual(self.session.state.evaluation('Engine', 'Battery').score, 8)

    def test_noop_mutation_does_not_notify(self):
        self.session.update_vehicle_info('colour', 'red')
        self.session.remove_image('Engine', 'Battery', 3)
        self.assertEqual(self.changes, [])
        self.assertFalse(self.session.dirty)

    def test_unknown_item(self):
        with self.assertRaises(UnknownItemError):
            self.session.evaluate_item('Engine', 'Warp core', 8)

    def test_save_rejected_until_valid(self):
        self.assertFalse(self.session.can_save)
        with self.assertRaises(SaveRejected) as ctx:
            self.session.save()
        self.assertIn('Brand is required', ctx.exception.errors)
        self.assertIn('Evaluate at least one component before saving', ctx.exception.errors)

        self._fill_vehicle()
        self.session.evaluate_item('Engine', 'Battery', 8)
        self.assertTrue(self.session.can_save)
        inspection_id = self.session.save()
        self.assertEqual(self.session.inspection_id, inspection_id)
        self.assertFalse(self.session.dirty)

    def test_save_and_open(self):
        self._fill_vehicle()
        self.session.evaluate_item('Engine', 'Battery', 8, '50.000', 'Weak')
        self.session.add_image('Engine', 'Battery', 'https://img/a.jpg')
        before = self.session.state
        inspection_id = self.session.save()

        other = InspectionSession(store=self.store)
        other.open(inspection_id)
        self.assertEqual(other.state, before)
        self.assertEqual(other.inspection_id, inspection_id)
        self.assertEqual(other.metrics.overall.total_repair_cost, 50000.0)

    def test_store_failure_keeps_state(self):
        self._fill_vehicle()
        self.session.evaluate_item('Engine', 'Battery', 8)
        before = self.session.state
        store = mock.MagicMock()
        store.save.side_effect = BackendError('offline')
        self.session.store = store
        with self.assertRaises(BackendError):
            self.session.save()
        self.assertIs(self.session.state, before)
        self.assertTrue(self.session.dirty)
        self.assertIsNone(self.session.inspection_id)

    def test_metrics_snapshot_sent_to_store(self):
        self._fill_vehicle()
        self.session.evaluate_item('Engine', 'Battery', 6, 1000)
        store = mock.MagicMock()
        store.save.return_value = {'id': 'abc'}
        self.session.store = store
        self.assertEqual(self.session.save(), 'abc')
        vehicle_info, items, metrics = store.save.call_args.args
        self.assertEqual(vehicle_info['plate'], 'ABC123')
        self.assertEqual(items['Engine']['Battery']['score'], 6)
        self.assertEqual(metrics['global']['total_repair_cost'], 1000.0)

    def test_saving_opened_inspection_updates_it(self):
        self._fill_vehicle()
        self.session.evaluate_item('Engine', 'Battery', 8)
        inspection_id = self.session.save()

        other = InspectionSession(store=self.store)
        other.open(inspection_id)
        other.evaluate_item('Engine', 'Filters', 5, '20.000')
        self.assertEqual(other.save(), inspection_id)

        rows = self.store.list_recent()
        self.assertEqual([r['id'] for r in rows], [inspection_id])
        self.assertEqual(rows[0]['total_repair_cost'], 20000.0)
        items = self.store.load(inspection_id)['items']
        self.assertEqual(items['Engine']['Filters']['score'], 5)
        self.assertEqual(items['Engine']['Battery']['score'], 8)

    def test_second_save_updates(self):
        self._fill_vehicle()
        self.session.evaluate_item('Engine', 'Battery', 6)
        store = mock.MagicMock()
        store.save.return_value = {'id': 'abc'}
        store.update.return_value = {'id': 'abc'}
        self.session.store = store
        self.session.save()
        self.session.evaluate_item('Engine', 'Battery', 9)
        self.assertEqual(self.session.save(), 'abc')
        store.save.assert_called_once()
        inspection_id, vehicle_info, items, metrics = store.update.call_args.args
        self.assertEqual(inspection_id, 'abc')
        self.assertEqual(items['Engine']['Battery']['score'], 9)

    def test_update_of_deleted_inspection_fails(self):
        self._fill_vehicle()
        self.session.evaluate_item('Engine', 'Battery', 8)
        inspection_id = self.session.save()
        self.store.delete(inspection_id)
        self.session.evaluate_item('Engine', 'Battery', 3)
        with self.assertRaises(BackendError):
            self.session.save()
        self.assertTrue(self.session.dirty)

    def test_reset_starts_a_new_record(self):
        self._fill_vehicle()
        self.session.evaluate_item('Engine', 'Battery', 8)
        first = self.session.save()
        self.session.reset()
        self._fill_vehicle()
        self.session.evaluate_item('Engine', 'Battery', 4)
        self.assertNotEqual(self.session.save(), first)
        self.assertEqual(len(self.store.list_recent()), 2)

    def test_no_store(self):
        session = InspectionSession()
        with self.assertRaises(SaveRejected):
            session.open('abc')

    def test_reset(self):
        self.session.evaluate_item('Engine', 'Battery', 8)
        self.session.reset()
        self.assertEqual(self.session.state.evaluated_count, 0)
        self.assertFalse(self.session.dirty)

    def test_listener_errors_are_logged(self):
        def broken(_state):
            raise RuntimeError('listener bug')

        session = InspectionSession(on_change=broken)
        with self.assertLogs('inspection.session', level='ERROR'):
            session.evaluate_item('Engine', 'Battery', 5)
        self.assertEqual(session.state.evaluation('Engine', 'Battery').score, 5)


if __name__ == '__main__':
    unittest.main()
