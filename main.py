"""AI Futures Trader - entry point.

1. Every DECISION_INTERVAL_SECONDS, collects indicator snapshots for the
   tracked symbols and asks the LLM for one Buy/Sell/Hold decision
2. Validates the decision, then opens a guarded market position with
   reduce-only stop-loss and take-profit orders
3. Every RECONCILE_INTERVAL_SECONDS, matches closed positions against venue
   history and records win/loss, exit price and exit reason

Usage:
    python main.py          # run both jobs until SIGINT/SIGTERM
    python main.py --once   # one reconcile pass and one decision cycle
"""

from ai_futures_trader.app import main

if __name__ == "__main__":
    main()
