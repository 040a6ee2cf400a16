import os
import tempfile

from django.test import SimpleTestCase

from maintenance_gate.builder import (
    DEFAULT_BYPASS_URL_PATH,
    DEFAULT_RETRY_INTERVAL,
    OptionsBuilder,
    apply_defaults,
    validate_options,
)
from maintenance_gate.data import (
    BaseDirectory,
    ContentType,
    PathMatchMode,
    PathRule,
    ResponseFile,
)
from maintenance_gate.environment import HostingEnvironment
from maintenance_gate.exceptions import (
    MaintenanceConfigurationError,
    MissingOptionError,
)
from maintenance_gate.options import OptionKind

configured_builders = []


def configure_builder(builder):
    configured_builders.append(builder)
    builder.bypass_user_role("Operators")


class OptionsBuilderTests(SimpleTestCase):
    def test_directives_are_chainable(self):
        options = (
            OptionsBuilder()
            .use_default_response()
            .set_code_503_retry_interval(60)
            .bypass_url_path("/status", PathMatchMode.CASE_SENSITIVE)
            .bypass_file_extensions([".css", "JS"])
            .bypass_all_authenticated_users()
            .bypass_user_names(["alice", "bob"])
            .bypass_user_role("Operators")
            .build()
        )

        self.assertEqual(options.get_value(OptionKind.CODE_503_RETRY_INTERVAL), 60)
        self.assertEqual(
            options.values(OptionKind.BYPASS_URL_PATH),
            [PathRule("/status", PathMatchMode.CASE_SENSITIVE)],
        )
        self.assertEqual(
            options.values(OptionKind.BYPASS_FILE_EXTENSION), ["css", "JS"]
        )
        self.assertTrue(options.get_value(OptionKind.BYPASS_ALL_AUTHENTICATED_USERS))
        self.assertEqual(
            options.values(OptionKind.BYPASS_USER_NAME), ["alice", "bob"]
        )
        self.assertEqual(options.values(OptionKind.BYPASS_USER_ROLE), ["Operators"])

    def test_second_response_source_rejected(self):
        builder = OptionsBuilder().use_default_response()
        with self.assertRaises(MaintenanceConfigurationError):
            builder.use_response_file("maintenance.html")

    def test_second_singleton_rejected(self):
        builder = OptionsBuilder().set_code_503_retry_interval(10)
        with self.assertRaises(MaintenanceConfigurationError):
            builder.set_code_503_retry_interval(20)

    def test_invalid_arguments_rejected(self):
        with self.assertRaises(ValueError):
            OptionsBuilder().set_code_503_retry_interval(0)
        with self.assertRaises(ValueError):
            OptionsBuilder().bypass_url_path("admin")
        with self.assertRaises(ValueError):
            OptionsBuilder().bypass_file_extension(".")
        with self.assertRaises(ValueError):
            OptionsBuilder().bypass_user_name("  ")
        with self.assertRaises(ValueError):
            OptionsBuilder().use_response("down", content_type="xml")
        with self.assertRaises(ValueError):
            OptionsBuilder().use_response("down", encoding="no-such-codec")
        with self.assertRaises(ValueError):
            OptionsBuilder().use_response_file("down.html", base_dir="home")

    def test_use_response_encodes_text(self):
        options = (
            OptionsBuilder()
            .use_response('{"status": "down"}', ContentType.JSON, "utf-16-le")
            .build()
        )
        response = options.get_value(OptionKind.RESPONSE)
        self.assertEqual(response.content_type, ContentType.JSON)
        self.assertEqual(response.encoding, "utf-16-le")
        self.assertEqual(response.content_bytes, '{"status": "down"}'.encode("utf-16-le"))

    def test_use_response_rejects_bytes_invalid_in_encoding(self):
        with self.assertRaisesMessage(ValueError, "'utf-8'"):
            OptionsBuilder().use_response(b"\xff\xfeok?", encoding="utf-8")

    def test_use_response_keeps_valid_bytes(self):
        content = "Wartung l\u00e4uft".encode("latin-1")
        options = OptionsBuilder().use_response(content, encoding="latin-1").build()
        response = options.get_value(OptionKind.RESPONSE)
        self.assertEqual(response.content_bytes, content)


class ApplyDefaultsTests(SimpleTestCase):
    def test_defaults_fill_unset_kinds(self):
        options = OptionsBuilder().build()

        self.assertTrue(options.get_value(OptionKind.USE_DEFAULT_RESPONSE))
        self.assertEqual(
            options.get_value(OptionKind.CODE_503_RETRY_INTERVAL),
            DEFAULT_RETRY_INTERVAL,
        )
        self.assertEqual(
            options.values(OptionKind.BYPASS_URL_PATH), [DEFAULT_BYPASS_URL_PATH]
        )
        self.assertTrue(all(option.is_default for option in options))

    def test_defaults_do_not_replace_explicit_options(self):
        options = (
            OptionsBuilder()
            .use_response_file("maintenance.html")
            .set_code_503_retry_interval(30)
            .bypass_url_path("/health")
            .build()
        )

        self.assertFalse(options.any(OptionKind.USE_DEFAULT_RESPONSE))
        self.assertEqual(options.get_value(OptionKind.CODE_503_RETRY_INTERVAL), 30)
        self.assertEqual(len(options.get_all(OptionKind.BYPASS_URL_PATH)), 1)
        self.assertFalse(any(option.is_default for option in options))

    def test_use_no_default_values(self):
        builder = OptionsBuilder().use_no_default_values()
        options = builder.build()

        self.assertEqual(len(options), 1)
        self.assertFalse(options.any(OptionKind.CODE_503_RETRY_INTERVAL))

    def test_apply_defaults_leaves_input_untouched(self):
        explicit = OptionsBuilder().set_code_503_retry_interval(5).get_explicit_options()
        completed = apply_defaults(explicit)

        self.assertEqual(len(explicit), 1)
        self.assertGreater(len(completed), 1)


class FromSettingsTests(SimpleTestCase):
    def test_settings_map_to_directives(self):
        options = OptionsBuilder.from_settings(
            {
                "RESPONSE_FILE": {"path": "down.txt", "base_dir": "content_root"},
                "RETRY_INTERVAL": "90",
                "BYPASS_URL_PATHS": ["/health", ("/API", "case_sensitive")],
                "BYPASS_FILE_EXTENSIONS": "css",
                "BYPASS_ALL_AUTHENTICATED_USERS": True,
                "BYPASS_USER_NAMES": ["admin"],
                "BYPASS_USER_ROLES": ["Operators"],
                "USE_DEFAULT_RESPONSE": False,
                "CONTROL_SERVICE": "maintenance_gate.backends.CacheControlService",
                "STATE_FILE": "state.json",
            }
        ).build()

        self.assertEqual(
            options.get_value(OptionKind.RESPONSE_FILE),
            ResponseFile("down.txt", BaseDirectory.CONTENT_ROOT),
        )
        self.assertEqual(options.get_value(OptionKind.CODE_503_RETRY_INTERVAL), 90)
        self.assertEqual(
            options.values(OptionKind.BYPASS_URL_PATH),
            [
                PathRule("/health", PathMatchMode.CASE_INSENSITIVE),
                PathRule("/API", PathMatchMode.CASE_SENSITIVE),
            ],
        )
        self.assertEqual(options.values(OptionKind.BYPASS_FILE_EXTENSION), ["css"])
        self.assertFalse(options.any(OptionKind.USE_DEFAULT_RESPONSE))

    def test_explicit_response_setting(self):
        options = OptionsBuilder.from_settings(
            {"RESPONSE": {"content": "Be right back", "content_type": "text"}}
        ).build()
        response = options.get_value(OptionKind.RESPONSE)
        self.assertEqual(response.content_type, ContentType.TEXT)
        self.assertEqual(response.content_bytes, b"Be right back")

    def test_bypass_url_paths_as_single_string(self):
        options = OptionsBuilder.from_settings(
            {"BYPASS_URL_PATHS": "/health", "USE_NO_DEFAULT_VALUES": True}
        ).build()
        self.assertEqual(
            options.values(OptionKind.BYPASS_URL_PATH),
            [PathRule("/health", PathMatchMode.CASE_INSENSITIVE)],
        )

    def test_undecodable_response_setting(self):
        with self.assertRaisesMessage(MaintenanceConfigurationError, "RESPONSE"):
            OptionsBuilder.from_settings(
                {"RESPONSE": {"content": b"\xff\xfeok?", "encoding": "utf-8"}}
            )

    def test_empty_settings_use_defaults(self):
        options = OptionsBuilder.from_settings(None).build()
        self.assertTrue(options.get_value(OptionKind.USE_DEFAULT_RESPONSE))

    def test_unknown_key_raises(self):
        with self.assertRaisesMessage(MaintenanceConfigurationError, "RETRY_AFTER"):
            OptionsBuilder.from_settings({"RETRY_AFTER": 10})

    def test_invalid_value_raises_configuration_error(self):
        with self.assertRaisesMessage(MaintenanceConfigurationError, "RETRY_INTERVAL"):
            OptionsBuilder.from_settings({"RETRY_INTERVAL": "soon"})

    def test_configure_callable(self):
        configured_builders.clear()
        options = OptionsBuilder.from_settings(
            {
                "CONFIGURE": (
                    "maintenance_gate.tests.test_builder.configure_builder"
                )
            }
        ).build()

        self.assertEqual(len(configured_builders), 1)
        self.assertEqual(options.values(OptionKind.BYPASS_USER_ROLE), ["Operators"])

    def test_configure_import_error(self):
        with self.assertRaises(MaintenanceConfigurationError):
            OptionsBuilder.from_settings({"CONFIGURE": "maintenance_gate.nope.configure"})


class ValidateOptionsTests(SimpleTestCase):
    def setUp(self):
        self.environment = HostingEnvironment(None, tempfile.gettempdir())

    def test_valid_options(self):
        options = OptionsBuilder().build()
        validate_options(options, self.environment)

    def test_no_response_source(self):
        options = (
            OptionsBuilder()
            .use_no_default_values()
            .set_code_503_retry_interval(10)
            .build()
        )
        with self.assertRaisesMessage(
            MaintenanceConfigurationError, "No maintenance response was specified."
        ):
            validate_options(options, self.environment)

    def test_missing_retry_interval(self):
        options = OptionsBuilder().use_no_default_values().use_default_response().build()
        with self.assertRaises(MissingOptionError):
            validate_options(options, self.environment)

    def test_missing_response_file(self):
        options = (
            OptionsBuilder()
            .use_response_file("missing-page.html", BaseDirectory.CONTENT_ROOT)
            .build()
        )
        expected_path = os.path.join(tempfile.gettempdir(), "missing-page.html")

        with self.assertRaises(MaintenanceConfigurationError) as context:
            validate_options(options, self.environment)

        message = str(context.exception)
        self.assertIn("missing-page.html", message)
        self.assertIn(os.path.abspath(expected_path), message)
