#!/usr/bin/env python3
"""
Tests for the Deployment Sequencer
Ordering, abort-on-first-failure and cancellation behaviour
"""

import pytest

from chainmigrate.errors import (ArtifactNotFound, DeploymentRejected,
                                 InvalidStepDeclaration, MigrationCancelled)
from chainmigrate.registry import ArtifactMetadata, InMemoryRegistry
from chainmigrate.sequencer import CancellationToken, Sequencer, run, succeeded, summarize
from chainmigrate.steps import ArtifactReference, DeployedContract, DeploymentStep


def make_metadata(name):
    return ArtifactMetadata(name=name, abi=[], bytecode="0x6080")


class RecordingBackend:
    """Backend double that records every deploy call"""

    def __init__(self, fail_on=None, raise_with=None):
        self.calls = []
        self.fail_on = fail_on
        self.raise_with = raise_with

    def deploy(self, metadata, args):
        self.calls.append((metadata.name, tuple(args)))
        if metadata.name == self.fail_on:
            if self.raise_with is not None:
                raise self.raise_with
            raise DeploymentRejected(metadata.name, "insufficient funds")
        return DeployedContract(
            name=metadata.name,
            address=f"0x{len(self.calls):040x}",
            tx_hash=f"0x{len(self.calls):064x}",
            block_number=len(self.calls),
        )


class TestSequencerRun:
    """Test class for Sequencer.run"""

    def setup_method(self):
        """Set up a registry with the two contracts of the project"""
        self.registry = InMemoryRegistry({
            "CIDsOwners": make_metadata("CIDsOwners"),
            "IPFSUploadedFiles": make_metadata("IPFSUploadedFiles"),
        })
        self.backend = RecordingBackend()
        self.sequencer = Sequencer(self.registry, self.backend)

    def test_all_steps_succeed_in_order(self):
        """Test that every resolvable step is deployed and reported in order"""
        steps = [DeploymentStep.of("CIDsOwners"), DeploymentStep.of("IPFSUploadedFiles")]

        results = self.sequencer.run(steps)

        assert [r.name for r in results] == ["CIDsOwners", "IPFSUploadedFiles"]
        assert [r.index for r in results] == [1, 2]
        assert all(r.ok for r in results)
        assert results[0].contract.address == "0x" + "0" * 39 + "1"
        assert succeeded(results)

    def test_empty_run_is_a_noop(self):
        """Test that an empty step list deploys nothing"""
        assert self.sequencer.run([]) == []
        assert self.backend.calls == []

    def test_deploy_calls_follow_input_order(self):
        """Test that the backend observes deploy calls in declaration order"""
        steps = [DeploymentStep.of("IPFSUploadedFiles"), DeploymentStep.of("CIDsOwners")]

        self.sequencer.run(steps)

        assert [name for name, _ in self.backend.calls] == ["IPFSUploadedFiles", "CIDsOwners"]

    def test_constructor_args_are_passed_through(self):
        """Test that constructor arguments reach the backend untouched"""
        self.sequencer.run([DeploymentStep.of("CIDsOwners", 42, "owner")])
        assert self.backend.calls == [("CIDsOwners", (42, "owner"))]

    def test_missing_artifact_stops_the_run(self):
        """Test that an unresolvable artifact fails its step and nothing after it runs"""
        steps = [
            DeploymentStep.of("CIDsOwners"),
            DeploymentStep.of("Missing"),
            DeploymentStep.of("IPFSUploadedFiles"),
        ]

        results = self.sequencer.run(steps)

        assert len(results) == 2
        assert results[0].ok
        assert not results[1].ok
        assert isinstance(results[1].error, ArtifactNotFound)
        assert results[1].error.name == "Missing"
        assert self.backend.calls == [("CIDsOwners", ())]

    def test_missing_first_artifact_never_deploys(self):
        """Test the [Missing, CIDsOwners] scenario"""
        results = self.sequencer.run([DeploymentStep.of("Missing"), DeploymentStep.of("CIDsOwners")])

        assert len(results) == 1
        assert isinstance(results[0].error, ArtifactNotFound)
        assert self.backend.calls == []

    def test_rejected_deployment_carries_step_index(self):
        """Test that a backend rejection is tagged with the failing step"""
        backend = RecordingBackend(fail_on="IPFSUploadedFiles")
        results = run(
            [DeploymentStep.of("CIDsOwners"), DeploymentStep.of("IPFSUploadedFiles")],
            self.registry,
            backend,
        )

        assert results[0].ok
        error = results[1].error
        assert isinstance(error, DeploymentRejected)
        assert error.index == 2
        assert "insufficient funds" in str(error)
        assert not succeeded(results)

    def test_unexpected_backend_exception_is_wrapped(self):
        """Test that arbitrary backend exceptions become DeploymentRejected"""
        backend = RecordingBackend(fail_on="CIDsOwners", raise_with=RuntimeError("node went away"))
        results = Sequencer(self.registry, backend).run([DeploymentStep.of("CIDsOwners")])

        error = results[0].error
        assert isinstance(error, DeploymentRejected)
        assert error.index == 1
        assert isinstance(error.__cause__, RuntimeError)

    def test_backend_returning_nothing_fails_the_step(self):
        """Test that a deploy call without a contract stops the run with partial results"""
        class NoContractBackend(RecordingBackend):
            def deploy(self, metadata, args):
                contract = super().deploy(metadata, args)
                return None if metadata.name == "IPFSUploadedFiles" else contract

        results = Sequencer(self.registry, NoContractBackend()).run(
            [DeploymentStep.of("CIDsOwners"), DeploymentStep.of("IPFSUploadedFiles")])

        assert len(results) == 2
        assert results[0].ok
        error = results[1].error
        assert isinstance(error, DeploymentRejected)
        assert error.index == 2
        assert "instead of a deployed contract" in str(error)

    def test_invalid_step_fails_before_any_deploy(self):
        """Test that a malformed step aborts the run before side effects"""
        steps = [DeploymentStep.of("CIDsOwners"), DeploymentStep(ArtifactReference(""))]

        with pytest.raises(InvalidStepDeclaration, match="step 2"):
            self.sequencer.run(steps)
        assert self.backend.calls == []

    def test_non_step_values_are_rejected(self):
        """Test that raw strings are not accepted as steps"""
        with pytest.raises(InvalidStepDeclaration, match="step 1"):
            self.sequencer.run(["CIDsOwners"])


class TestCancellation:
    """Test class for cancellation at step boundaries"""

    def test_cancelled_token_stops_before_first_step(self):
        """Test that a cancelled token prevents any deploy call"""
        registry = InMemoryRegistry({"CIDsOwners": make_metadata("CIDsOwners")})
        backend = RecordingBackend()
        token = CancellationToken()
        token.cancel()

        results = run([DeploymentStep.of("CIDsOwners")], registry, backend, cancel=token)

        assert isinstance(results[0].error, MigrationCancelled)
        assert backend.calls == []

    def test_cancel_during_a_step_finishes_that_step(self):
        """Test that cancelling mid-step only takes effect at the next boundary"""
        registry = InMemoryRegistry({
            "CIDsOwners": make_metadata("CIDsOwners"),
            "IPFSUploadedFiles": make_metadata("IPFSUploadedFiles"),
        })
        token = CancellationToken()

        class CancellingBackend(RecordingBackend):
            def deploy(self, metadata, args):
                token.cancel()
                return super().deploy(metadata, args)

        backend = CancellingBackend()
        results = run(
            [DeploymentStep.of("CIDsOwners"), DeploymentStep.of("IPFSUploadedFiles")],
            registry, backend, cancel=token,
        )

        assert results[0].ok
        assert isinstance(results[1].error, MigrationCancelled)
        assert results[1].error.index == 2
        assert [name for name, _ in backend.calls] == ["CIDsOwners"]


class TestSummarize:
    """Test class for summarize"""

    def test_summary_of_success(self):
        registry = InMemoryRegistry({"CIDsOwners": make_metadata("CIDsOwners")})
        results = run([DeploymentStep.of("CIDsOwners")], registry, RecordingBackend())
        assert summarize(results) == "1 contract(s) deployed"

    def test_summary_names_the_failing_step(self):
        registry = InMemoryRegistry({})
        results = run([DeploymentStep.of("Missing")], registry, RecordingBackend())
        summary = summarize(results)
        assert "stopped at step 1 (Missing)" in summary
        assert summary.startswith("0 contract(s) deployed")
