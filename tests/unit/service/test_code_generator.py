"""Unit tests for CodeGenerator."""

import re
from unittest.mock import patch

import pytest

from device_flow.core.config import DeviceFlowConfig
from device_flow.core.exceptions import CryptoUnavailable
from device_flow.service.code_generator import CodeGenerator


@pytest.fixture
def generator():
    return CodeGenerator(DeviceFlowConfig())


class TestDeviceCode:
    def test_url_safe_and_long(self, generator):
        code = generator.generate_device_code()

        # 32 random bytes encode to 43 base64url characters
        assert len(code) == 43
        assert re.fullmatch(r'[A-Za-z0-9_-]+', code)

    def test_codes_differ(self, generator):
        codes = {generator.generate_device_code() for _ in range(100)}

        assert len(codes) == 100

    @pytest.mark.parametrize('error', [NotImplementedError, OSError])
    def test_no_secure_randomness(self, generator, error):
        with patch(
            'device_flow.service.code_generator.secrets.token_urlsafe',
            side_effect=error(),
        ):
            with pytest.raises(CryptoUnavailable):
                generator.generate_device_code()


class TestUserCode:
    def test_length_and_alphabet(self, generator):
        for _ in range(50):
            code = generator.generate_user_code()

            assert len(code) == 8
            assert all(c in 'ABCDEFGHJKMNPQRSTUVWXYZ23456789' for c in code)

    def test_custom_length_and_charset(self):
        generator = CodeGenerator(
            DeviceFlowConfig(user_code_length=6, user_code_charset='BCD')
        )

        code = generator.generate_user_code()

        assert len(code) == 6
        assert set(code) <= set('BCD')

    def test_no_secure_randomness(self, generator):
        with patch(
            'device_flow.service.code_generator.secrets.choice',
            side_effect=NotImplementedError(),
        ):
            with pytest.raises(CryptoUnavailable):
                generator.generate_user_code()


class TestFormatting:
    def test_format_with_pattern(self, generator):
        assert generator.format_user_code('BCDF2345') == 'BCDF-2345'

    def test_format_falls_back_to_halves(self):
        generator = CodeGenerator(DeviceFlowConfig(user_code_length=6))

        assert generator.format_user_code('BCDF23') == 'BCD-F23'

    def test_format_odd_length_unchanged(self):
        generator = CodeGenerator(DeviceFlowConfig(user_code_length=5))

        assert generator.format_user_code('BCDF2') == 'BCDF2'

    @pytest.mark.parametrize(
        'entered,expected',
        [
            ('BCDF-2345', 'BCDF2345'),
            ('bcdf-2345', 'BCDF2345'),
            (' bcdf 2345 ', 'BCDF2345'),
            ('BCDF2345', 'BCDF2345'),
        ],
    )
    def test_normalize(self, generator, entered, expected):
        assert generator.normalize_user_code(entered) == expected

    def test_formatted_code_normalizes_back(self, generator):
        code = generator.generate_user_code()

        assert generator.normalize_user_code(generator.format_user_code(code)) == code

    @pytest.mark.parametrize(
        'entered,valid',
        [
            ('BCDF-2345', True),
            ('bcdf2345', True),
            ('BCDF-234', False),
            ('BCDF-23456', False),
            ('BCDF-2340', False),  # 0 is not in the alphabet
            ('OOOO-IIII', False),
            ('', False),
        ],
    )
    def test_validate_code_format(self, generator, entered, valid):
        assert generator.validate_code_format(entered) is valid
