from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

CURRENT_DIR = Path(__file__).resolve().parents[2]
if str(CURRENT_DIR) not in sys.path:
    sys.path.insert(0, str(CURRENT_DIR))

from integration_tests.telegram_bot.common import TestConfig, TicketBotInteractor, contains, run_flow

logger = logging.getLogger(__name__)


class TicketFlowTester:
    def __init__(self, interactor: TicketBotInteractor, config: TestConfig) -> None:
        self.interactor = interactor
        self.config = config

    async def run(self) -> None:
        await self.interactor.send_and_expect(f"/start {self.config.account_id}", "conta vinculada com sucesso")

        bet_message = await self.interactor.send_ticket_and_expect(
            self.config.ticket_image,
            ["bilhete processado com sucesso", "aposta registrada com sucesso"],
            caption="Integração\nTipster Teste",
        )
        if not bet_message.buttons:
            raise RuntimeError("Bet message was delivered without its keyboard.")

        await self.interactor.click_button(bet_message, "Alterar Status")
        await asyncio.sleep(2)
        menu = await self.interactor.refresh(bet_message)
        await self.interactor.click_button(menu, "Voltar")
        await asyncio.sleep(2)

        primary = await self.interactor.refresh(bet_message)
        await self.interactor.click_button(primary, "Alterar Status")
        await asyncio.sleep(2)
        menu = await self.interactor.refresh(bet_message)
        await self.interactor.click_button(menu, "Ganha")
        await self.interactor.wait_for(contains("status: ganha"))

        settled = await self.interactor.refresh(bet_message)
        await self.interactor.click_button(settled, "Excluir")
        await self.interactor.wait_for(contains("bilhete excluído com sucesso"))

        logger.info("Ticket flow test completed successfully")


async def ticket_flow(interactor: TicketBotInteractor, config: TestConfig) -> None:
    await TicketFlowTester(interactor, config).run()


if __name__ == "__main__":
    run_flow(ticket_flow)
