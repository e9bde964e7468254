import unittest

from courtside import create_app
from courtside.extensions import db
from courtside.models import PaymentSettings
from courtside.services import settings_service
from courtside.validation import ValidationError


class PaymentSettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "LOG_LEVEL": "WARNING",
            "CURRENCY": "CZK",
            "QR_ACCOUNT": "19-2000145399",
            "QR_BANK_CODE": "0800",
            "QR_RECIPIENT_NAME": "TK Sparta",
            "QR_REFERENCE_PREFIX": "",
            "INCLUDE_COURT_PRICE": True,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(PaymentSettings).delete()
        db.session.commit()

    def test_first_read_seeds_from_config(self):
        settings = settings_service.get_payment_settings()
        self.assertTrue(settings.cash_enabled)
        self.assertTrue(settings.qr_enabled)
        self.assertEqual(settings.qr_account, "19-2000145399")
        self.assertEqual(settings.qr_bank_code, "0800")
        self.assertIsNone(settings.qr_reference_prefix)
        self.assertEqual(db.session.query(PaymentSettings).count(), 1)

        # Second read returns the same row
        self.assertEqual(settings_service.get_payment_settings().id, settings.id)

    def test_partial_update_keeps_other_fields(self):
        settings = settings_service.update_payment_settings({"qr_recipient_name": "TK Sparta Praha"}, user_id=3)
        self.assertEqual(settings.qr_recipient_name, "TK Sparta Praha")
        self.assertEqual(settings.qr_account, "19-2000145399")
        self.assertEqual(settings.updated_by_user_id, 3)

    def test_iban_is_normalized(self):
        settings = settings_service.update_payment_settings({"qr_account": "cz65 0800 0000 1920 0014 5399"})
        self.assertEqual(settings.qr_account, "CZ6508000000192000145399")
        self.assertTrue(settings_service.is_iban(settings.qr_account))

    def test_string_booleans_are_accepted(self):
        settings = settings_service.update_payment_settings({"cash_enabled": "false", "include_court_price": "TRUE"})
        self.assertFalse(settings.cash_enabled)
        self.assertTrue(settings.include_court_price)

    def test_rejects_unknown_and_malformed_values(self):
        bad_updates = [
            {},
            {"tip_jar": True},
            {"cash_enabled": "maybe"},
            {"qr_bank_code": "08"},
            {"qr_reference_prefix": "12345"},
            {"qr_reference_prefix": "A1"},
            {"currency": "Kč"},
            {"qr_account": "not an account"},
        ]
        for changes in bad_updates:
            with self.subTest(changes=changes):
                with self.assertRaises(ValidationError):
                    settings_service.update_payment_settings(changes)
        self.assertEqual(settings_service.get_payment_settings().qr_bank_code, "0800")

    def test_qr_needs_account_and_recipient(self):
        with self.assertRaises(ValidationError):
            settings_service.update_payment_settings({"qr_account": None})
        with self.assertRaises(ValidationError):
            settings_service.update_payment_settings({"qr_recipient_name": ""})
        with self.assertRaises(ValidationError):
            settings_service.update_payment_settings({"qr_account": "2000145399", "qr_bank_code": None})

        # Switching QR off lifts the requirement
        settings = settings_service.update_payment_settings({"qr_enabled": False, "qr_account": None})
        self.assertIsNone(settings.qr_account)

    def test_available_methods(self):
        self.assertEqual(settings_service.get_available_payment_methods(), ["cash", "payment_request"])

        settings_service.update_payment_settings({"cash_enabled": False})
        self.assertEqual(settings_service.get_available_payment_methods(), ["payment_request"])

        settings_service.update_payment_settings({"qr_enabled": False})
        self.assertEqual(settings_service.get_available_payment_methods(), [])

    def test_qr_per_sale_type(self):
        settings = settings_service.get_payment_settings()
        self.assertTrue(settings.qr_enabled_for_reservations)
        self.assertTrue(settings.qr_enabled_for_bar)

        settings_service.update_payment_settings({"qr_enabled_for_bar": "false"})
        self.assertTrue(settings_service.is_qr_enabled_for("reservation"))
        self.assertFalse(settings_service.is_qr_enabled_for("bar"))
        self.assertEqual(settings_service.get_available_payment_methods("bar"), ["cash"])
        self.assertEqual(settings_service.get_available_payment_methods("reservation"), ["cash", "payment_request"])

        # The global switch wins over the per-type toggles
        settings_service.update_payment_settings({"qr_enabled": False})
        self.assertFalse(settings_service.is_qr_enabled_for("reservation"))

        with self.assertRaises(ValidationError):
            settings_service.is_qr_enabled_for("wallet")


if __name__ == "__main__":
    unittest.main()
