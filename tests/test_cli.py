import unittest

from scanner_service.models import ScannerUser

from tests.support import AppTestCase


class TestCreateOperatorCommand(AppTestCase):

    def test_creates_operator_who_can_log_in(self):
        runner = self.app.test_cli_runner()

        result = runner.invoke(args=['create-operator', 'gate1', 'Gate One', '--role', 'admin', '--password', 'pw-123456'])

        self.assertEqual(result.exit_code, 0, result.output)
        user = ScannerUser.query.filter_by(username='gate1').one()
        self.assertEqual(user.role, 'admin')
        self.assertTrue(user.check_password('pw-123456'))
        self.assertEqual(self.login('gate1', 'pw-123456').status_code, 200)

    def test_duplicate_username(self):
        self.add_user('gate1')
        runner = self.app.test_cli_runner()

        result = runner.invoke(args=['create-operator', 'gate1', 'Gate One', '--password', 'pw'])

        self.assertNotEqual(result.exit_code, 0)
        self.assertIn('already exists', result.output)


if __name__ == '__main__':
    unittest.main()
