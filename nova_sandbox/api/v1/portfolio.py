"""Investment endpoints - market overview and portfolios"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from nova_sandbox.api.dependencies import get_investment_engine, get_request_id, raise_for_failure
from nova_sandbox.api.v1.schemas import HoldingResponse, PortfolioCreateRequest, PortfolioResponse
from nova_sandbox.domain.models import ErrorCode
from nova_sandbox.engines.investment import InvestmentEngine
from nova_sandbox.infrastructure.database.models import Portfolio

router = APIRouter()


def to_response(portfolio: Portfolio) -> PortfolioResponse:
    return PortfolioResponse(
        id=portfolio.id,
        user_id=portfolio.user_id,
        name=portfolio.name,
        portfolio_type=portfolio.portfolio_type,
        total_invested=portfolio.total_invested,
        total_value=portfolio.total_value,
        total_gain_loss=portfolio.total_gain_loss,
        holdings=[
            HoldingResponse(
                symbol=h.asset.symbol,
                quantity=h.quantity,
                cost_basis=h.cost_basis,
                market_value=h.market_value,
                gain_loss=h.gain_loss,
            )
            for h in portfolio.holdings
        ],
        updated_at=portfolio.updated_at,
    )


@router.get("/market")
def get_market_overview(investment: InvestmentEngine = Depends(get_investment_engine)):
    return investment.get_market_overview()


@router.get("/portfolios/summary")
def get_investment_summary(investment: InvestmentEngine = Depends(get_investment_engine)):
    return investment.get_investment_summary()


@router.post("/portfolios", response_model=PortfolioResponse, status_code=201)
def create_portfolio(
    request_body: PortfolioCreateRequest,
    request: Request,
    investment: InvestmentEngine = Depends(get_investment_engine),
):
    request_id = get_request_id(request)
    try:
        portfolio = investment.create_portfolio(
            request_body.user_id, request_body.amount, request_body.portfolio_type, request_body.name
        )
        if portfolio is None:
            investment.db.rollback()
            raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")
        investment.db.commit()
    except HTTPException:
        raise
    except Exception as e:
        investment.db.rollback()
        logging.error(f"Portfolio creation failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    return to_response(portfolio)


@router.get("/portfolios/{portfolio_id}", response_model=PortfolioResponse)
def get_portfolio(portfolio_id: str, investment: InvestmentEngine = Depends(get_investment_engine)):
    portfolio = investment.portfolios.get(portfolio_id)
    if portfolio is None:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    return to_response(portfolio)


@router.get("/users/{user_id}/portfolios", response_model=List[PortfolioResponse])
def list_user_portfolios(user_id: str, investment: InvestmentEngine = Depends(get_investment_engine)):
    return [to_response(p) for p in investment.get_user_portfolios(user_id)]
