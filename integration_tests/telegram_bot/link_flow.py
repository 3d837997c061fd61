from __future__ import annotations

import logging
import sys
from pathlib import Path

CURRENT_DIR = Path(__file__).resolve().parents[2]
if str(CURRENT_DIR) not in sys.path:
    sys.path.insert(0, str(CURRENT_DIR))

from integration_tests.telegram_bot.common import TestConfig, TicketBotInteractor, run_flow

logger = logging.getLogger(__name__)


class LinkFlowTester:
    def __init__(self, interactor: TicketBotInteractor, config: TestConfig) -> None:
        self.interactor = interactor
        self.account_id = config.account_id

    async def run(self) -> None:
        await self.interactor.send_and_expect(
            "/desvincular",
            ["conta desvinculada", "nenhuma conta está vinculada"],
        )
        await self.interactor.send_and_expect("/start", "para vincular sua conta")
        await self.interactor.send_and_expect("/id", "uso: /id")
        await self.interactor.send_and_expect(f"/start {self.account_id}", "conta vinculada com sucesso")
        # Linking the same pair again is accepted.
        await self.interactor.send_and_expect(f"/id {self.account_id}", "conta vinculada com sucesso")
        await self.interactor.send_and_expect("/start", "sua conta já está vinculada")
        await self.interactor.send_and_expect(f"/start support_{self.account_id}", "bem-vindo ao suporte")

        logger.info("Link flow test completed successfully")


async def link_flow(interactor: TicketBotInteractor, config: TestConfig) -> None:
    await LinkFlowTester(interactor, config).run()


if __name__ == "__main__":
    run_flow(link_flow)
