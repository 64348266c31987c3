from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from click.testing import CliRunner
from cdn_invalidate.amazon import AwsTransport
from cdn_invalidate.cli import cli
from cdn_invalidate.cli.invalidation import invalidate_after_deploy, invalidate_now
from cdn_invalidate.env import Config
from cdn_invalidate.errors import ConfigurationError, InvalidationError, ResolutionError
from cdn_invalidate.orchestrator import InvalidationOutcome, OutcomeStatus
from cdn_invalidate.settings import InvalidationTarget, ProjectConfig

SERVERLESS_YML = """\
service: my-site
provider:
  stage: dev
custom:
  CloudfrontInvalidation:
    - distributionId: D1
      items: [/*]
"""


class TestInvalidationCommands(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self.target = InvalidationTarget(distributionId="D1", items=["/*"])
        project = ProjectConfig.model_validate(
            {"service": "my-site", "custom": {"CloudfrontInvalidation": [{"distributionId": "D1", "items": ["/*"]}]}}
        )
        self.transport = AwsTransport(region="us-east-1")
        self.cfg = Config(project=project, transport=self.transport)

    @patch("cdn_invalidate.cli.invalidation.run_invalidations")
    def test_invalidate_is_manual(self, mock_run):
        mock_run.return_value = [InvalidationOutcome(self.target, OutcomeStatus.INVALIDATED)]

        result = self.runner.invoke(invalidate_now, [], obj=self.cfg)

        self.assertEqual(result.exit_code, 0)
        mock_run.assert_called_once_with(
            self.cfg.targets, "dev", "my-site-dev", self.transport, auto_hook=False, skip=False
        )
        self.assertIn("1 started, 0 skipped, 0 failed", result.output)

    @patch("cdn_invalidate.cli.invalidation.run_invalidations")
    def test_after_deploy_is_auto_hook(self, mock_run):
        mock_run.return_value = [InvalidationOutcome(self.target, OutcomeStatus.SKIPPED)]

        result = self.runner.invoke(invalidate_after_deploy, [], obj=self.cfg)

        self.assertEqual(result.exit_code, 0)
        self.assertTrue(mock_run.call_args[1]["auto_hook"])
        self.assertIn("0 started, 1 skipped, 0 failed", result.output)

    @patch("cdn_invalidate.cli.invalidation.run_invalidations")
    def test_rejected_invalidation_exits_non_zero(self, mock_run):
        mock_run.return_value = [
            InvalidationOutcome(self.target, OutcomeStatus.INVALIDATED),
            InvalidationOutcome(
                InvalidationTarget(distributionId="D2", items=["/*"]),
                OutcomeStatus.FAILED,
                error=InvalidationError("rejected"),
            ),
        ]

        result = self.runner.invoke(invalidate_now, [], obj=self.cfg)

        self.assertEqual(result.exit_code, 1)
        self.assertIn("1 started, 0 skipped, 1 failed", result.output)
        self.assertIn("Invalidation failed for: D2", result.output)

    @patch("cdn_invalidate.cli.invalidation.run_invalidations")
    def test_configuration_and_resolution_failures_do_not_fail_the_hook(self, mock_run):
        mock_run.return_value = [
            InvalidationOutcome(self.target, OutcomeStatus.INVALIDATED),
            InvalidationOutcome(
                InvalidationTarget(distributionIdKey="CdnId", items=["/*"]),
                OutcomeStatus.FAILED,
                error=ResolutionError("no output"),
            ),
            InvalidationOutcome(
                InvalidationTarget(items=["/*"]), OutcomeStatus.FAILED, error=ConfigurationError("missing id")
            ),
        ]

        result = self.runner.invoke(invalidate_after_deploy, [], obj=self.cfg)

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("1 started, 0 skipped, 2 failed", result.output)


class TestCliGroup(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self.temp_dir = tempfile.TemporaryDirectory()
        self.config_file = Path(self.temp_dir.name) / "serverless.yml"
        self.config_file.write_text(SERVERLESS_YML)

    def tearDown(self):
        self.temp_dir.cleanup()

    @patch("cdn_invalidate.cli.invalidation.run_invalidations")
    def test_options_reach_the_run(self, mock_run):
        mock_run.return_value = []

        result = self.runner.invoke(
            cli,
            ["--config", str(self.config_file), "--stage", "prod", "--region", "eu-west-1", "--no-deploy", "invalidate"],
        )

        self.assertEqual(result.exit_code, 0, result.output)
        targets, stage, stack_name, transport = mock_run.call_args[0]
        self.assertEqual(stage, "prod")
        self.assertEqual(stack_name, "my-site-prod")
        self.assertEqual(transport.region, "eu-west-1")
        self.assertEqual(targets[0].distribution_id, "D1")
        self.assertTrue(mock_run.call_args[1]["skip"])

    @patch("cdn_invalidate.cli.invalidation.run_invalidations")
    def test_missing_cacert_fails_before_any_target(self, mock_run):
        missing = Path(self.temp_dir.name) / "missing.pem"

        result = self.runner.invoke(
            cli, ["--config", str(self.config_file), "--cacert", str(missing), "after-deploy"]
        )

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Supplied cacert option to a file that does not exist", result.output)
        mock_run.assert_not_called()

    @patch("cdn_invalidate.cli.invalidation.run_invalidations")
    def test_invalid_config_is_reported(self, mock_run):
        self.config_file.write_text("service: s\ncustom:\n  CloudfrontInvalidation:\n    - distributionId: D1\n")

        result = self.runner.invoke(cli, ["--config", str(self.config_file), "invalidate"])

        self.assertEqual(result.exit_code, 1)
        mock_run.assert_not_called()

    @patch("cdn_invalidate.orchestrator.AwsTransport.cloudfront_client")
    @patch("cdn_invalidate.orchestrator.AwsTransport.cloudformation_client")
    def test_end_to_end_with_mocked_clients(self, mock_cloudformation, mock_cloudfront):
        cloudfront = MagicMock()
        cloudfront.create_invalidation.return_value = {"Invalidation": {"Id": "I1"}}
        mock_cloudfront.return_value = cloudfront

        result = self.runner.invoke(cli, ["--config", str(self.config_file), "after-deploy"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("DistributionId: D1", result.output)
        self.assertIn("CloudfrontInvalidation: Invalidation started", result.output)
        cloudfront.create_invalidation.assert_called_once()

    @patch("cdn_invalidate.orchestrator.AwsTransport.cloudfront_client")
    @patch("cdn_invalidate.orchestrator.AwsTransport.cloudformation_client")
    def test_misspelled_target_key_only_affects_that_target(self, mock_cloudformation, mock_cloudfront):
        cloudfront = MagicMock()
        cloudfront.create_invalidation.return_value = {"Invalidation": {"Id": "I1"}}
        mock_cloudfront.return_value = cloudfront
        self.config_file.write_text(
            "service: my-site\n"
            "custom:\n"
            "  CloudfrontInvalidation:\n"
            "    - distributionId: D1\n"
            "      items: [/*]\n"
            "    - distributionID: E2\n"
            "      items: [/*]\n"
        )

        result = self.runner.invoke(cli, ["--config", str(self.config_file), "after-deploy"])

        self.assertEqual(result.exit_code, 0, result.output)
        cloudfront.create_invalidation.assert_called_once()
        self.assertEqual(cloudfront.create_invalidation.call_args[1]["DistributionId"], "D1")
        self.assertIn("distributionId or distributionIdKey is required", result.output)
        self.assertIn("1 started, 0 skipped, 1 failed", result.output)

    @patch("cdn_invalidate.orchestrator.AwsTransport.cloudfront_client")
    @patch("cdn_invalidate.orchestrator.AwsTransport.cloudformation_client")
    def test_missing_stack_output_does_not_fail_the_hook(self, mock_cloudformation, mock_cloudfront):
        cloudfront = MagicMock()
        cloudfront.create_invalidation.return_value = {"Invalidation": {"Id": "I1"}}
        mock_cloudfront.return_value = cloudfront
        cloudformation = MagicMock()
        cloudformation.describe_stacks.return_value = {"Stacks": [{"Outputs": []}]}
        mock_cloudformation.return_value = cloudformation
        self.config_file.write_text(
            "service: my-site\n"
            "custom:\n"
            "  CloudfrontInvalidation:\n"
            "    - distributionId: D1\n"
            "      items: [/*]\n"
            "    - distributionIdKey: Missing\n"
            "      items: [/*]\n"
        )

        result = self.runner.invoke(cli, ["--config", str(self.config_file), "after-deploy"])

        self.assertEqual(result.exit_code, 0, result.output)
        cloudfront.create_invalidation.assert_called_once()
        self.assertIn("Failed to get DistributionId from stack output", result.output)

    @patch("cdn_invalidate.cli.invalidation.run_invalidations")
    def test_unexpanded_stage_variable_needs_override(self, mock_run):
        self.config_file.write_text("service: my-site\nprovider:\n  stage: \"${opt:stage, 'dev'}\"\n")

        result = self.runner.invoke(cli, ["--config", str(self.config_file), "invalidate"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Serverless variables are not expanded in provider.stage", result.output)
        mock_run.assert_not_called()

    @patch("cdn_invalidate.cli.invalidation.run_invalidations")
    def test_stage_override_replaces_variable(self, mock_run):
        mock_run.return_value = []
        self.config_file.write_text("service: my-site\nprovider:\n  stage: \"${opt:stage, 'dev'}\"\n")

        result = self.runner.invoke(cli, ["--config", str(self.config_file), "--stage", "prod", "invalidate"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(mock_run.call_args[0][2], "my-site-prod")
