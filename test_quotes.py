import unittest
from unittest import mock

from pydantic import ValidationError
from sqlalchemy.exc import InternalError, OperationalError

from fixtures import make_sheet, memory_session
from greenfee import models, store
from greenfee.quotes import calculate_booking_price, preview_day_prices
from greenfee.schemas import BookingPriceRequest

WEDNESDAY = "2026-02-04"
SATURDAY = "2026-02-07"


def walkins(count):
    return [{"identity_code": "walkin", "name": f"球员{i + 1}"} for i in range(count)]


class QuoteTestCase(unittest.TestCase):
    def setUp(self):
        self.db = memory_session()
        self.sheet = make_sheet()
        self.db.add(self.sheet)
        self.db.add(models.TeamPricingConfig(
            club_id="club_a",
            enabled=True,
            floor_price_rate=0.8,
            tiers=[
                {"minPlayers": 8, "maxPlayers": 31, "discountRate": 0.9, "label": "团队9折"},
                {"minPlayers": 32, "discountRate": 0.7, "label": "大团7折"},
            ],
        ))
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def quote(self, **fields):
        fields.setdefault("club_id", "club_a")
        fields.setdefault("date", WEDNESDAY)
        fields.setdefault("tee_time", "08:00")
        return calculate_booking_price(self.db, fields)


class StandardQuoteTests(QuoteTestCase):
    def test_itemized_standard_quote(self):
        quote = self.quote(
            players=[
                {"identity_code": "walkin", "name": "A"},
                {"member_type": "member", "member_level": 3, "name": "B"},
                {"type": "guest", "name": "C"},
            ],
            need_caddy=True,
            need_cart=True,
        )
        self.assertTrue(quote.success)
        self.assertEqual(quote.price_source, "auto")
        self.assertEqual(quote.day_type, "weekday")
        self.assertEqual(quote.day_type_name, "平日")
        self.assertEqual(quote.time_slot, "morning")
        self.assertEqual(quote.time_slot_name, "早场")
        self.assertEqual(quote.rate_sheet_id, self.sheet.id)
        self.assertTrue(quote.has_rate_sheet)
        self.assertEqual([p.identity_code for p in quote.player_breakdown], ["walkin", "member_3", "guest"])
        self.assertEqual([p.green_fee for p in quote.player_breakdown], [800, 500, 700])
        self.assertEqual(quote.green_fee, 2000)
        self.assertEqual(quote.caddy_fee, 200)
        self.assertEqual(quote.cart_fee, 150)
        self.assertEqual(quote.insurance_fee, 30)
        self.assertEqual(quote.discount, 0)
        self.assertEqual(quote.total_fee, 2380)
        self.assertEqual(quote.per_player_fee, 667)
        self.assertEqual(quote.fee_standards.caddy_fee_unit, 200)
        self.assertIsNone(quote.team_discount)

    def test_caddy_and_cart_only_when_requested(self):
        quote = self.quote(players=walkins(2))
        self.assertEqual(quote.caddy_fee, 0)
        self.assertEqual(quote.cart_fee, 0)
        self.assertEqual(quote.total_fee, 1620)

    def test_closed_date_refuses_quote(self):
        self.db.add(models.SpecialDate(club_id="club_a", date="2025-12-25", date_name="圣诞", is_closed=True))
        self.db.commit()
        quote = self.quote(date="2025-12-25", players=walkins(2))
        self.assertFalse(quote.success)
        self.assertTrue(quote.is_closed)
        self.assertIn("封场日", quote.error)
        self.assertEqual(quote.total_fee, 0)
        self.assertEqual(quote.player_breakdown, [])

    def test_missing_rate_sheet_prices_at_zero(self):
        quote = self.quote(date=SATURDAY, players=walkins(2), need_caddy=True)
        self.assertTrue(quote.success)
        self.assertFalse(quote.has_rate_sheet)
        self.assertIsNone(quote.rate_sheet_id)
        self.assertEqual(quote.day_type, "weekend")
        self.assertEqual(quote.total_fee, 0)
        self.assertIsNone(quote.fee_standards)

    def test_team_discount_for_eight_players(self):
        quote = self.quote(players=walkins(8))
        self.assertEqual(quote.green_fee, 6400)
        self.assertEqual(quote.discount, 640)
        self.assertEqual(quote.insurance_fee, 80)
        self.assertEqual(quote.total_fee, 5840)
        self.assertEqual(quote.team_discount.label, "团队9折")
        self.assertEqual(quote.team_discount.discounted_green_fee, 5760)

    def test_team_discount_uses_group_total_and_floor(self):
        quote = self.quote(players=walkins(2), total_players=40)
        self.assertEqual(quote.team_discount.total_players, 40)
        self.assertTrue(quote.team_discount.floor_applied)
        self.assertEqual(quote.discount, 320)
        self.assertEqual(quote.total_fee, 1300)

    def test_seven_players_get_no_team_discount(self):
        quote = self.quote(players=walkins(7))
        self.assertEqual(quote.discount, 0)
        self.assertIsNone(quote.team_discount)

    def test_same_request_same_quote(self):
        self.assertEqual(self.quote(players=walkins(3)), self.quote(players=walkins(3)))

    def test_quote_is_immutable(self):
        quote = self.quote(players=walkins(1))
        with self.assertRaises(ValidationError):
            quote.total_fee = 1

    def test_invalid_request_date_rejected(self):
        with self.assertRaises(ValidationError):
            BookingPriceRequest(date="2026/02/04")

    def test_club_setting_overrides_default(self):
        self.db.add(models.ClubSetting(key="club_a:pricing_team_discount_min_players", value="4"))
        self.db.commit()
        # Four players now reach the threshold, but the first tier starts at 8.
        self.assertIsNone(self.quote(players=walkins(4)).team_discount)
        quote = self.quote(players=walkins(2), total_players=10)
        self.assertEqual(quote.discount, 160)

    def test_failed_day_lookup_leaves_later_reads_working(self):
        # A failed statement aborts the transaction until it is rolled back.
        aborted = []
        real_query = store.query_rate_sheets
        real_rollback = self.db.rollback

        def failing_lookup(*args, **kwargs):
            aborted.append(True)
            raise OperationalError("SELECT", {}, Exception("store unavailable"))

        def rollback():
            aborted.clear()
            real_rollback()

        def rate_sheets(*args, **kwargs):
            if aborted:
                raise InternalError("SELECT", {}, Exception("current transaction is aborted"))
            return real_query(*args, **kwargs)

        with mock.patch("greenfee.store.find_special_date", side_effect=failing_lookup), \
                mock.patch("greenfee.store.query_rate_sheets", side_effect=rate_sheets), \
                mock.patch.object(self.db, "rollback", side_effect=rollback):
            quote = self.quote(players=walkins(1))
        self.assertTrue(quote.has_rate_sheet)
        self.assertEqual(quote.green_fee, 800)

    def test_non_finite_setting_still_quotes(self):
        self.db.add(models.ClubSetting(key="club_a:pricing_team_discount_min_players", value="nan"))
        self.db.commit()
        quote = self.quote(players=walkins(1))
        self.assertTrue(quote.has_rate_sheet)
        self.assertEqual(quote.green_fee, 800)


class AddOnAndReducedQuoteTests(QuoteTestCase):
    def test_add_on_quote_skips_insurance_and_team_discount(self):
        quote = self.quote(players=walkins(10), is_add_on=True)
        self.assertEqual(quote.mode, "add_on")
        self.assertEqual(quote.green_fee, 4000)
        self.assertEqual(quote.insurance_fee, 0)
        self.assertEqual(quote.discount, 0)
        self.assertIsNone(quote.team_discount)
        line = quote.player_breakdown[0]
        self.assertEqual(line.add_on_info.fee, 400)
        self.assertEqual(line.add_on_info.description, "加打9洞（估算50%）")

    def test_add_on_estimate_rate_setting(self):
        self.db.add(models.ClubSetting(key="pricing_add_on_estimate_rate", value="0.6"))
        self.db.commit()
        quote = self.quote(players=walkins(1), is_add_on=True)
        self.assertEqual(quote.green_fee, 480)
        self.assertEqual(quote.player_breakdown[0].add_on_info.description, "加打9洞（估算60%）")

    def test_reduced_quote(self):
        quote = self.quote(players=walkins(2), is_reduced=True, holes=18, holes_played=9)
        self.assertEqual(quote.mode, "reduced")
        self.assertEqual(quote.green_fee, 960)
        self.assertEqual(quote.insurance_fee, 20)
        info = quote.player_breakdown[0].reduced_info
        self.assertEqual(info.policy_type, "proportional")
        self.assertEqual(info.standard_fee, 800)
        self.assertEqual(info.charge_rate, 0.6)

    def test_reduced_mode_never_team_discounted(self):
        quote = self.quote(players=walkins(8), is_reduced=True, holes_played=18)
        self.assertEqual(quote.discount, 0)


class PackageQuoteTests(QuoteTestCase):
    def setUp(self):
        super().setUp()
        self.pkg = models.StayPackage(
            club_id="club_a",
            package_name="球住套餐",
            status="active",
            pricing={"prices": {"walkin": 2000, "member_1": 1500}, "weekendSurcharge": 300},
            includes={"caddyIncluded": True},
        )
        self.db.add(self.pkg)
        self.db.commit()

    def test_package_short_circuits_player_pricing(self):
        quote = self.quote(players=walkins(2), package_id=self.pkg.id, need_caddy=True, need_cart=True)
        self.assertEqual(quote.price_source, "package")
        self.assertEqual(quote.mode, "package")
        self.assertEqual(quote.green_fee, 2000)
        self.assertEqual(quote.caddy_fee, 0)
        self.assertEqual(quote.cart_fee, 150)
        self.assertEqual(quote.insurance_fee, 20)
        self.assertEqual(quote.total_fee, 2170)
        self.assertEqual(quote.player_breakdown, [])
        self.assertEqual(quote.package.package_name, "球住套餐")
        self.assertEqual(quote.rate_sheet_id, self.sheet.id)

    def test_package_uses_first_player_identity(self):
        players = [{"identity_code": "member_1"}, {"identity_code": "walkin"}]
        quote = self.quote(players=players, package_id=self.pkg.id, date=SATURDAY)
        self.assertEqual(quote.green_fee, 1800)
        self.assertEqual(quote.package.weekend_surcharge, 300)

    def test_inactive_package_falls_through(self):
        self.pkg.status = "inactive"
        self.db.commit()
        quote = self.quote(players=walkins(2), package_id=self.pkg.id)
        self.assertEqual(quote.price_source, "auto")
        self.assertEqual(quote.green_fee, 1600)

    def test_package_ignored_in_add_on_mode(self):
        quote = self.quote(players=walkins(1), package_id=self.pkg.id, is_add_on=True)
        self.assertEqual(quote.mode, "add_on")
        self.assertIsNone(quote.package)


class DayPricePreviewTests(QuoteTestCase):
    def test_prices_per_tee_time(self):
        self.db.add(make_sheet(rule_name="平日午场价格", time_slot="afternoon", prices={"walkin": 600}))
        self.db.commit()
        preview = preview_day_prices(self.db, "club_a", WEDNESDAY, "walkin")
        self.assertEqual(preview.prices["07:00"], 800)
        self.assertEqual(preview.prices["11:48"], 800)
        self.assertEqual(preview.prices["12:00"], 600)
        self.assertEqual(preview.prices["15:48"], 600)
        self.assertNotIn("16:00", preview.prices)
        self.assertEqual(len(preview.prices), 45)

    def test_closed_day_has_no_prices(self):
        self.db.add(models.SpecialDate(club_id="club_a", date=WEDNESDAY, is_closed=True))
        self.db.commit()
        preview = preview_day_prices(self.db, "club_a", WEDNESDAY, "walkin")
        self.assertTrue(preview.is_closed)
        self.assertEqual(preview.prices, {})


if __name__ == "__main__":
    unittest.main()
