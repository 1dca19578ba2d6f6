"""Executor — runs a Plan's Actions over the tool channel, one at a time.

Action → capability calls:
    validate_address  validate_address
    read_state        check_balance | get_contract_code
    transfer_value    compose_transaction
    deploy_contract   compose_transaction (no recipient)
    call_function     encode_call, then compose_transaction
    batch_call        encode_call + compose_transaction per inner call
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from pydantic import BaseModel

from ethagent.client.channel import ToolChannel, call_with_retry
from ethagent.errors import (
    ActionError,
    ChannelLost,
    ProtocolError,
    ProtocolMalformed,
    ProtocolRemoteError,
    ProtocolTimeout,
    ProtocolTransportError,
)
from ethagent.models.actions import (
    Action,
    BatchCall,
    CallFunction,
    DeployContract,
    ReadState,
    ReadTarget,
    TransferValue,
    ValidateAddress,
)
from ethagent.models.capabilities import (
    CheckBalanceResult,
    ComposeTransactionResult,
    EncodeCallResult,
    GetContractCodeResult,
    ValidateAddressResult,
)
from ethagent.models.results import ErrorKind, Plan, StepResult, StepStatus

logger = logging.getLogger(__name__)

ConfirmHook = Callable[[Action, StepResult], Awaitable[bool]]
"""Asked before re-running a state-mutating step that failed transiently.

The StepResult carries any partial progress, e.g. the transactions a batch
had already sent before it was interrupted.
"""


class _SkipTracker:
    """Remembers failed address validations within one Plan run."""

    def __init__(self) -> None:
        self.rejected: set[str] = set()
        self.validation_failed = False

    def record(self, action: Action, result: StepResult) -> None:
        if isinstance(action, ValidateAddress) and result.status == StepStatus.FAILED:
            self.rejected.add(action.address.lower())
            self.validation_failed = True

    def reason(self, action: Action) -> str | None:
        for address in action.addresses():
            if address.lower() in self.rejected:
                return f"address {address} failed validation"
        if action.mutates_state and self.validation_failed:
            return "an earlier address validation failed"
        return None


class Executor:
    """Executes Plans against a ToolChannel.

    Per-call timeouts, remote errors and malformed responses become failed
    StepResults and execution moves on. Losing the transport aborts the
    run with ChannelLost.
    """

    def __init__(
        self,
        channel: ToolChannel,
        *,
        read_attempts: int = 2,
    ) -> None:
        self._channel = channel
        self._read_attempts = read_attempts

    @property
    def channel(self) -> ToolChannel:
        return self._channel

    async def execute(
        self,
        plan: Plan,
        *,
        prior: Sequence[StepResult] = (),
        rerun: set[int] | frozenset[int] = frozenset(),
    ) -> list[StepResult]:
        """Run `plan` and return one StepResult per Action, in order.

        Args:
            plan: The Plan to run.
            prior: Results of an earlier run of the same Plan. Successes and
                failures are kept; skipped steps are reconsidered. Steps
                beyond the end of `prior` run normally.
            rerun: Indices in `prior` to execute again. Read-only steps
                after the first of them run again as well. State-mutating
                steps outside `rerun` keep their earlier result.

        Raises:
            ChannelLost: The transport failed. Carries every result so far,
                the interrupted step included.
        """
        results: list[StepResult] = []
        skips = _SkipTracker()
        first_rerun = min(rerun) if rerun else len(plan.actions)

        for index, action in enumerate(plan.actions):
            previous = prior[index] if index < len(prior) else None
            if previous is not None and self._keeps(index, action, previous, rerun, first_rerun):
                result = previous
            elif (reason := skips.reason(action)) is not None:
                logger.warning("Skipping step %d (%s): %s", index, action.kind, reason)
                result = StepResult.skipped(index, action, reason)
            else:
                resume = previous.payload if previous is not None and index in rerun else None
                try:
                    result = await self._run_step(index, action, resume)
                except ProtocolTransportError as e:
                    results.append(
                        StepResult.failure(index, action, ErrorKind.TRANSPORT, str(e), payload=e.partial)
                    )
                    raise ChannelLost(results, e) from e

            skips.record(action, result)
            results.append(result)

        logger.info(
            "Plan %s executed: %d/%d steps succeeded",
            plan.id,
            sum(1 for r in results if r.ok),
            len(results),
        )
        return results

    @staticmethod
    def _keeps(
        index: int,
        action: Action,
        previous: StepResult,
        rerun: set[int] | frozenset[int],
        first_rerun: int,
    ) -> bool:
        """Whether an earlier result of this step stands for this run."""
        if previous.status == StepStatus.SKIPPED or index in rerun:
            return False
        return index < first_rerun or action.mutates_state

    # --- Steps ---

    async def _run_step(self, index: int, action: Action, resume: dict[str, Any] | None = None) -> StepResult:
        logger.debug("Step %d: %s", index, action.describe())
        try:
            payload = await self._dispatch(action, resume)
        except ActionError as e:
            return StepResult.failure(index, action, ErrorKind.ACTION, str(e), payload=_error_payload(e))
        except ProtocolTimeout as e:
            return StepResult.failure(index, action, ErrorKind.TIMEOUT, str(e), payload=e.partial)
        except ProtocolRemoteError as e:
            return StepResult.failure(index, action, ErrorKind.REMOTE, e.message, code=e.code, payload=e.partial)
        except ProtocolMalformed as e:
            return StepResult.failure(index, action, ErrorKind.MALFORMED, str(e), payload=e.partial)
        return StepResult.success(index, action, payload)

    async def _dispatch(self, action: Action, resume: dict[str, Any] | None = None) -> dict[str, Any]:
        if isinstance(action, ValidateAddress):
            result = await self._read("validate_address", {"address": action.address}, ValidateAddressResult)
            if not result["is_valid"]:
                raise _StepRejected(f"invalid address {action.address}: {result.get('reason')}", result)
            return result

        if isinstance(action, ReadState):
            if action.target == ReadTarget.CODE:
                return await self._read("get_contract_code", {"address": action.address}, GetContractCodeResult)
            params: dict[str, Any] = {"address": action.address}
            if action.token:
                params["token"] = action.token
            return await self._read("check_balance", params, CheckBalanceResult)

        if isinstance(action, TransferValue):
            return await self._compose(
                {"from_address": action.from_address, "to": action.to_address, "value": action.value}
            )

        if isinstance(action, DeployContract):
            tx = await self._compose(
                {"from_address": action.from_address, "value": action.value, "data": action.bytecode}
            )
            if not tx.get("contract_address"):
                raise _StepRejected("deployment returned no contract address", tx)
            return tx

        if isinstance(action, CallFunction):
            return await self._call_function(action)

        if isinstance(action, BatchCall):
            return await self._batch(action, resume)

        raise ActionError(f"Unsupported action kind: {action.kind}")

    async def _batch(self, batch: BatchCall, resume: dict[str, Any] | None) -> dict[str, Any]:
        """Send each inner call in order, stopping at the first failure.

        `resume` is the payload of an interrupted earlier attempt: its
        `transactions` are kept and sending restarts at `failed_call`.
        """
        transactions: list[dict[str, Any]] = []
        start = 0
        if resume and "failed_call" in resume:
            transactions = list(resume.get("transactions") or [])
            start = resume["failed_call"]
            logger.info("Resuming batch at call %d of %d", start + 1, len(batch.calls))

        for position in range(start, len(batch.calls)):
            call = batch.calls[position]
            try:
                transactions.append(await self._call_function(call))
            except ActionError as e:
                raise _StepRejected(
                    f"call {position + 1}/{len(batch.calls)} ({call.signature}) failed: {e}",
                    {"transactions": transactions, "failed_call": position},
                ) from e
            except ProtocolError as e:
                if transactions:
                    logger.warning(
                        "Batch aborted after %d of %d calls: %s", len(transactions), len(batch.calls), e
                    )
                e.partial = {"transactions": transactions, "failed_call": position}
                raise
        return {"transactions": transactions}

    async def _call_function(self, call: CallFunction) -> dict[str, Any]:
        encoded = await self._read(
            "encode_call", {"signature": call.signature, "args": list(call.args)}, EncodeCallResult
        )
        tx = await self._compose(
            {
                "from_address": call.from_address,
                "to": call.contract,
                "value": call.value,
                "data": encoded["data"],
            }
        )
        return {"selector": encoded["selector"], **tx}

    # --- Channel calls ---

    async def _read(self, method: str, params: dict[str, Any], result_model: type[BaseModel]) -> dict[str, Any]:
        return await call_with_retry(
            self._channel, method, params, attempts=self._read_attempts, result_model=result_model
        )

    async def _compose(self, params: dict[str, Any]) -> dict[str, Any]:
        """Send one transaction. Never retried, and never abandoned mid-call.

        If the caller is cancelled while the call is outstanding, the call
        is allowed to settle before the cancellation propagates.
        """
        call = asyncio.ensure_future(
            self._channel.call("compose_transaction", params, result_model=ComposeTransactionResult)
        )
        try:
            tx = await asyncio.shield(call)
        except asyncio.CancelledError:
            logger.warning("Cancelled with compose_transaction in flight; waiting for it to settle")
            try:
                settled = await call
                logger.info("In-flight transaction settled: %s", settled.get("transaction_hash"))
            except ProtocolError as e:
                logger.warning("In-flight transaction failed: %s", e)
            raise
        if tx.get("status") != "success":
            raise _StepRejected(f"transaction {tx.get('transaction_hash')} {tx.get('status')}", tx)
        return tx


class _StepRejected(ActionError):
    """The provider answered, but the answer means the step failed."""

    def __init__(self, message: str, payload: dict[str, Any]) -> None:
        super().__init__(message)
        self.payload = payload


def _error_payload(error: ActionError) -> dict[str, Any] | None:
    return error.payload if isinstance(error, _StepRejected) else None


async def rerunnable_steps(
    plan: Plan,
    results: Sequence[StepResult],
    confirm: ConfirmHook | None = None,
) -> set[int] | None:
    """Indices of transient failures that may be executed again.

    Read-only steps always may. A state-mutating step may only with the
    confirm hook's approval, since the provider may have applied it.
    Returns None when some transient failure must not be re-run.
    """
    indices: set[int] = set()
    for result in results:
        if not result.is_transient_failure:
            continue
        action = plan.actions[result.index]
        if action.mutates_state:
            if confirm is None or not await confirm(action, result):
                logger.warning("Step %d (%s) may have been applied; not re-running", result.index, action.kind)
                return None
        indices.add(result.index)
    return indices
