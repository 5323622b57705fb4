"""Vehicle and inspection validation tests"""

import datetime
import unittest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from inspection import state as st
from inspection.catalog import default_catalog
from inspection.state import VehicleInfo
from inspection.validator import normalize_plate, validate_inspection_data, validate_vehicle_info

TODAY = datetime.date(2024, 6, 1)


def _vehicle(**kwargs):
    base = {'brand': 'Toyota', 'model': 'Prado', 'plate': 'ABC123', 'year': '2018', 'mileage': '85000'}
    base.update(kwargs)
    return base


class TestVehicleValidation(unittest.TestCase):
    """validate_vehicle_info"""

    def test_valid_vehicle(self):
        result = validate_vehicle_info(_vehicle(), today=TODAY)
        self.assertTrue(result.is_valid)
        self.assertTrue(result.can_save)
        self.assertEqual(result.errors, [])
        self.assertEqual(result.warnings, [])

    def test_missing_brand_blocks(self):
        result = validate_vehicle_info({'brand': '', 'model': 'X', 'plate': 'ABC123'}, today=TODAY)
        self.assertFalse(result.is_valid)
        self.assertFalse(result.can_save)
        self.assertTrue(any('Brand' in e for e in result.errors))

    def test_short_plate_is_warning(self):
        result = validate_vehicle_info({'brand': 'Toyota', 'model': 'Prado', 'plate': 'AB'}, today=TODAY)
        self.assertTrue(result.can_save)
        self.assertTrue(any('Plate' in w for w in result.warnings))

    def test_plate_format_warning(self):
        result = validate_vehicle_info(_vehicle(plate='1234AB'), today=TODAY)
        self.assertTrue(result.is_valid)
        self.assertTrue(any('usual format' in w for w in result.warnings))

    def test_plate_normalised_before_checks(self):
        self.assertEqual(normalize_plate(' abc-123 '), 'ABC123')
        result = validate_vehicle_info(_vehicle(plate='abc-123'), today=TODAY)
        self.assertEqual(result.warnings, [])

    def test_long_plate_warning(self):
        result = validate_vehicle_info(_vehicle(plate='ABCDEFGHIJ'), today=TODAY)
        self.assertTrue(result.is_valid)
        self.assertTrue(any('too long' in w for w in result.warnings))

    def test_missing_required_fields(self):
        result = validate_vehicle_info({}, today=TODAY)
        self.assertEqual(result.errors, ['Brand is required', 'Model is required', 'Plate is required'])

    def test_whitespace_counts_as_missing(self):
        result = validate_vehicle_info(_vehicle(model='   '), today=TODAY)
        self.assertIn('Model is required', result.errors)

    def test_year_range(self):
        self.assertTrue(validate_vehicle_info(_vehicle(year='2025'), today=TODAY).is_valid)
        self.assertFalse(validate_vehicle_info(_vehicle(year='2026'), today=TODAY).is_valid)
        self.assertFalse(validate_vehicle_info(_vehicle(year='1899'), today=TODAY).is_valid)
        self.assertFalse(validate_vehicle_info(_vehicle(year='twenty'), today=TODAY).is_valid)

    def test_missing_year_and_mileage_are_warnings(self):
        result = validate_vehicle_info(_vehicle(year='', mileage=''), today=TODAY)
        self.assertTrue(result.is_valid)
        self.assertEqual(len(result.warnings), 2)

    def test_mileage(self):
        self.assertTrue(validate_vehicle_info(_vehicle(mileage='85.000 km'), today=TODAY).is_valid)
        self.assertFalse(validate_vehicle_info(_vehicle(mileage='-5'), today=TODAY).is_valid)
        self.assertFalse(validate_vehicle_info(_vehicle(mileage='lots'), today=TODAY).is_valid)
        self.assertFalse(validate_vehicle_info(_vehicle(mileage='nan'), today=TODAY).is_valid)
        high = validate_vehicle_info(_vehicle(mileage='600000'), today=TODAY)
        self.assertTrue(high.is_valid)
        self.assertTrue(any('Mileage' in w for w in high.warnings))

    def test_accepts_dataclass_and_aliases(self):
        self.assertTrue(validate_vehicle_info(VehicleInfo(brand='Kia', model='Rio', plate='XYZ987'), today=TODAY).is_valid)
        self.assertTrue(validate_vehicle_info({'marca': 'Kia', 'modelo': 'Rio', 'placa': 'XYZ987'}, today=TODAY).is_valid)

    def test_non_mapping_input(self):
        result = validate_vehicle_info(None, today=TODAY)
        self.assertFalse(result.is_valid)
        self.assertEqual(len(result.errors), 1)


class TestInspectionValidation(unittest.TestCase):
    """validate_inspection_data"""

    def setUp(self):
        s = st.initialize(default_catalog())
        s = st.update_vehicle_info(s, 'brand', 'Toyota')
        s = st.update_vehicle_info(s, 'model', 'Prado')
        s = st.update_vehicle_info(s, 'plate', 'ABC123')
        self.state = s

    def test_requires_an_evaluated_item(self):
        result = validate_inspection_data(self.state, today=TODAY)
        self.assertFalse(result.is_valid)
        self.assertIn('Evaluate at least one component before saving', result.errors)

    def test_valid_after_evaluation(self):
        s = st.evaluate_item(self.state, 'Engine', 'Battery', 7)
        result = validate_inspection_data(s, today=TODAY)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.errors, [])

    def test_notes_only_evaluation_counts(self):
        s = st.evaluate_item(self.state, 'Engine', 'Battery', 0, 0, 'Checked')
        self.assertTrue(validate_inspection_data(s, today=TODAY).is_valid)

    def test_vehicle_errors_included(self):
        s = st.update_vehicle_info(self.state, 'brand', '')
        s = st.evaluate_item(s, 'Engine', 'Battery', 7)
        result = validate_inspection_data(s, today=TODAY)
        self.assertEqual(result.errors, ['Brand is required'])

    def test_not_a_state(self):
        result = validate_inspection_data({'items': {}})
        self.assertFalse(result.is_valid)
        self.assertEqual(result.errors, ['No inspection data to save'])


if __name__ == '__main__':
    unittest.main()
