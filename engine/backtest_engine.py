"""Bar-by-bar backtesting engine.

The engine walks bars forward through a small position state machine:

    None -> (Enter) -> Position -> Exit -> None

Key rules:
1. Bars before the lookback window is full are skipped
2. An entry signal opens the position on the signal bar at its close, or
   waits in Enter until a later bar trades through a conditional entry price
3. While in a position the exits are checked in a fixed order once per bar:
   stop hit, profit target hit, then the exit rule
4. A position still open at the last bar is closed at that bar's close with
   exit reason ``finalize``; the returned status stays ``Position``
5. Profit is direction aware and growth is always a multiplicative factor
"""

import logging
from collections import deque
from typing import TYPE_CHECKING, List, NamedTuple, Optional

from engine.trade_management import ExitCondition, ExitResolver, ExitType
from engine.types import (
    BacktestOptions,
    Bar,
    EnterPositionOptions,
    OpenPositionRuleArgs,
    Position,
    PositionStatus,
    RuleParams,
    TimestampedValue,
    Trade,
    TradeDirection,
)

if TYPE_CHECKING:
    from strategies.base import Strategy

logger = logging.getLogger(__name__)


class BacktestOutcome(NamedTuple):
    """Closed trades plus the state the run ended in."""
    trades: List[Trade]
    last_status: PositionStatus


# ============================================================================
# Position arithmetic
# ============================================================================

def _signed_move(direction: TradeDirection, entry_price: float, price: float) -> float:
    return price - entry_price if direction == TradeDirection.LONG else entry_price - price


def _growth(direction: TradeDirection, entry_price: float, price: float) -> float:
    return price / entry_price if direction == TradeDirection.LONG else entry_price / price


def _offset(direction: TradeDirection, price: float, distance: float, towards_loss: bool) -> float:
    """Price ``distance`` away from ``price`` on the losing or winning side."""
    sign = -1.0 if direction == TradeDirection.LONG else 1.0
    if not towards_loss:
        sign = -sign
    return price + sign * distance


def _tighter_stop(direction: TradeDirection, a: float, b: float) -> float:
    return max(a, b) if direction == TradeDirection.LONG else min(a, b)


def finalize_position(position: Position, exit_time, exit_price: float, exit_reason: str) -> Trade:
    """Freeze an open position into a Trade.

    Args:
        position: Position being closed
        exit_time: Timestamp of the exit bar
        exit_price: Fill price
        exit_reason: Recorded exit reason

    Returns:
        Trade with copies of the position's recorded series
    """
    profit = _signed_move(position.direction, position.entry_price, exit_price)
    unit_risk = position.initial_unit_risk
    rmultiple = profit / unit_risk if unit_risk else 0.0
    return Trade(
        direction=position.direction,
        entry_time=position.entry_time,
        entry_price=position.entry_price,
        exit_time=exit_time,
        exit_price=exit_price,
        profit=profit,
        profit_pct=profit / position.entry_price * 100.0,
        growth=_growth(position.direction, position.entry_price, exit_price),
        risk_pct=position.initial_risk_pct or 0.0,
        rmultiple=rmultiple,
        risk_series=list(position.risk_series),
        holding_period=position.holding_period,
        exit_reason=exit_reason,
        stop_price=position.initial_stop_price or 0.0,
        stop_price_series=list(position.stop_price_series),
        profit_target=position.profit_target or 0.0,
    )


# ============================================================================
# Engine
# ============================================================================

class BacktestEngine:
    """Runs one strategy over one bar series."""

    def __init__(self, strategy: "Strategy", options: Optional[BacktestOptions] = None):
        """
        Initialize backtest engine.

        Args:
            strategy: Strategy to simulate
            options: Recording switches (defaults record nothing)
        """
        self.strategy = strategy
        self.options = options or BacktestOptions()
        self.exit_resolver = ExitResolver()

    def run(self, bars: List[Bar]) -> BacktestOutcome:
        """Simulate the strategy over ``bars``.

        Args:
            bars: Bars in chronological order

        Returns:
            BacktestOutcome(trades, last_status)
        """
        lookback_period = max(self.strategy.lookback_period, 1)
        if not bars or len(bars) < lookback_period:
            logger.warning(
                f"Insufficient data for backtest: {len(bars) if bars else 0} bars, "
                f"lookback period {lookback_period}"
            )
            return BacktestOutcome([], PositionStatus.NONE)

        parameters = dict(self.strategy.parameters)
        series = bars
        if self.strategy.prep_indicators is not None:
            series = self.strategy.prep_indicators(list(bars), parameters)
            if not series:
                logger.warning("Indicator preparation left no bars to simulate")
                return BacktestOutcome([], PositionStatus.NONE)

        trades: List[Trade] = []
        status = PositionStatus.NONE
        pending: Optional[EnterPositionOptions] = None
        position: Optional[Position] = None
        window: deque = deque(maxlen=lookback_period)

        for bar in series:
            window.append(bar)
            if len(window) < lookback_period:
                continue
            lookback = list(window)

            if status == PositionStatus.NONE:
                signal = self.strategy.entry_rule(RuleParams(bar=bar, lookback=lookback, parameters=parameters))
                if not signal:
                    continue
                options = signal if isinstance(signal, EnterPositionOptions) else EnterPositionOptions()
                if options.entry_price is None:
                    position = self._open_position(bar, lookback, parameters, options.direction, bar.close)
                    status = PositionStatus.POSITION
                else:
                    pending = options
                    status = PositionStatus.ENTER

            elif status == PositionStatus.ENTER:
                fill = self._conditional_fill(pending, bar)
                if fill is not None:
                    position = self._open_position(bar, lookback, parameters, pending.direction, fill)
                    pending = None
                    status = PositionStatus.POSITION

            elif status == PositionStatus.POSITION:
                exit_condition = self._check_exits(position, bar, lookback, parameters)
                if exit_condition is not None:
                    status = PositionStatus.EXIT
                    trades.append(self._close_position(position, bar, exit_condition))
                    position = None
                    status = PositionStatus.NONE

        if position is not None:
            last_bar = series[-1]
            trades.append(self._close_position(position, last_bar, ExitCondition.of(ExitType.FINALIZE, last_bar.close)))

        return BacktestOutcome(trades, status)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    @staticmethod
    def _conditional_fill(pending: EnterPositionOptions, bar: Bar) -> Optional[float]:
        """Fill price once the bar trades through the conditional entry price."""
        price = pending.entry_price
        if pending.direction == TradeDirection.LONG:
            return max(price, bar.open) if bar.high >= price else None
        return min(price, bar.open) if bar.low <= price else None

    def _open_position(
        self,
        bar: Bar,
        lookback: List[Bar],
        parameters: dict,
        direction: TradeDirection,
        entry_price: float,
    ) -> Position:
        position = Position(
            direction=direction,
            entry_time=bar.time,
            entry_price=entry_price,
            extreme_price=entry_price,
        )
        args = OpenPositionRuleArgs(
            entry_price=entry_price, position=position, bar=bar, lookback=lookback, parameters=parameters
        )

        if self.strategy.stop_loss is not None:
            position.initial_stop_price = _offset(direction, entry_price, self.strategy.stop_loss(args), True)

        if self.strategy.trailing_stop_loss is not None:
            trailing = _offset(direction, entry_price, self.strategy.trailing_stop_loss(args), True)
            if position.initial_stop_price is None:
                position.initial_stop_price = trailing
            else:
                position.initial_stop_price = _tighter_stop(direction, position.initial_stop_price, trailing)

        position.cur_stop_price = position.initial_stop_price
        if position.cur_stop_price is not None:
            position.initial_unit_risk = _signed_move(direction, position.cur_stop_price, entry_price)
            position.initial_risk_pct = position.initial_unit_risk / entry_price * 100.0
            position.cur_risk_pct = position.initial_risk_pct
            position.cur_rmultiple = 0.0
            self._record(position, bar)

        if self.strategy.profit_target is not None:
            position.profit_target = _offset(direction, entry_price, self.strategy.profit_target(args), False)

        logger.debug(
            f"Opened {direction.value} at {entry_price:.4f} on {bar.time} "
            f"(stop={position.cur_stop_price}, target={position.profit_target})"
        )
        return position

    def _check_exits(
        self,
        position: Position,
        bar: Bar,
        lookback: List[Bar],
        parameters: dict,
    ) -> Optional[ExitCondition]:
        """Run the ordered exit checks for one bar.

        Stop and target use the levels in effect at the start of the bar.
        When neither fires the position is marked to market before the exit
        rule sees it.
        """
        exit_condition = self.exit_resolver.resolve(self.exit_resolver.price_exits(position, bar))
        if exit_condition is not None:
            return exit_condition

        args = OpenPositionRuleArgs(
            entry_price=position.entry_price, position=position, bar=bar, lookback=lookback, parameters=parameters
        )
        self._mark_to_market(position, args)
        return self.exit_resolver.rule_fired(self.strategy.exit_rule, args)

    def _mark_to_market(self, position: Position, args: OpenPositionRuleArgs) -> None:
        bar = args.bar
        direction = position.direction
        position.profit = _signed_move(direction, position.entry_price, bar.close)
        position.profit_pct = position.profit / position.entry_price * 100.0
        position.growth = _growth(direction, position.entry_price, bar.close)
        position.holding_period += 1

        if direction == TradeDirection.LONG:
            position.extreme_price = max(position.extreme_price, bar.high)
        else:
            position.extreme_price = min(position.extreme_price, bar.low)

        if self.strategy.trailing_stop_loss is not None:
            candidate = _offset(direction, position.extreme_price, self.strategy.trailing_stop_loss(args), True)
            # Trailing stops only ever move in the trade's favour
            if position.cur_stop_price is None:
                position.cur_stop_price = candidate
            else:
                position.cur_stop_price = _tighter_stop(direction, position.cur_stop_price, candidate)

        if position.cur_stop_price is not None:
            unit_risk = _signed_move(direction, position.cur_stop_price, bar.close)
            position.cur_risk_pct = unit_risk / bar.close * 100.0
            position.cur_rmultiple = position.profit / unit_risk if unit_risk else 0.0

        if self.strategy.profit_target is not None:
            position.profit_target = _offset(direction, position.entry_price, self.strategy.profit_target(args), False)

        self._record(position, bar)

    def _record(self, position: Position, bar: Bar) -> None:
        if self.options.record_stop_price and position.cur_stop_price is not None:
            position.stop_price_series.append(TimestampedValue(bar.time, position.cur_stop_price))
        if self.options.record_risk and position.cur_risk_pct is not None:
            position.risk_series.append(TimestampedValue(bar.time, position.cur_risk_pct))

    def _close_position(self, position: Position, bar: Bar, exit_condition: ExitCondition) -> Trade:
        trade = finalize_position(position, bar.time, exit_condition.exit_price, exit_condition.reason)
        logger.debug(
            f"Closed {trade.direction.value} at {trade.exit_price:.4f} on {bar.time} "
            f"({trade.exit_reason}, profit={trade.profit:.4f})"
        )
        return trade


def backtest(strategy: "Strategy", bars: List[Bar], options: Optional[BacktestOptions] = None) -> BacktestOutcome:
    """Run ``strategy`` over ``bars``; returns (trades, last_status)."""
    return BacktestEngine(strategy, options).run(bars)
