import pytest

from seo_proxy.classifier import BOT_SIGNATURES, BotClassifier, default_classifier


class TestBotClassifier:
    @pytest.mark.parametrize(
        "user_agent",
        [
            "Googlebot/2.1 (+http://www.google.com/bot.html)",
            "Mozilla/5.0 (compatible; bingbot/2.0; +http://www.bing.com/bingbot.htm)",
            "Mozilla/5.0 AppleWebKit/537.36 (KHTML, like Gecko; compatible; GPTBot/1.0)",
            "Mozilla/5.0 (compatible; ClaudeBot/1.0; +claudebot@anthropic.com)",
            "facebookexternalhit/1.1 (+http://www.facebook.com/externalhit_uatext.php)",
            "Slackbot-LinkExpanding 1.0 (+https://api.slack.com/robots)",
            "Screaming Frog SEO Spider/19.0",
            "Mozilla/5.0 (compatible; AhrefsBot/7.0; +http://ahrefs.com/robot/)",
            "WhatsApp/2.23.20.0",
        ],
    )
    def test_known_crawlers_detected(self, user_agent):
        assert default_classifier.classify(user_agent) is True

    @pytest.mark.parametrize("signature", BOT_SIGNATURES)
    def test_every_signature_matches_in_any_case(self, signature):
        classifier = BotClassifier()

        assert classifier.classify(f"Agent ({signature.upper()})") is True
        assert classifier.classify(f"prefix-{signature}-suffix") is True

    @pytest.mark.parametrize(
        "user_agent",
        [
            None,
            "",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148",
            "curl/8.4.0",
        ],
    )
    def test_humans_and_missing_identity_not_detected(self, user_agent):
        assert default_classifier.classify(user_agent) is False

    def test_signature_with_regex_characters_is_literal(self):
        classifier = BotClassifier(["my.bot", "a+b"])

        assert classifier.classify("my.bot/1.0") is True
        assert classifier.classify("myxbot/1.0") is False
        assert classifier.classify("a+b") is True
        assert classifier.classify("aab") is False

    def test_classifier_is_immutable(self):
        classifier = BotClassifier(["examplebot"])

        with pytest.raises(AttributeError):
            classifier.extra = "value"
        assert classifier.signatures == ("examplebot",)

    def test_empty_signature_list_rejected(self):
        with pytest.raises(ValueError):
            BotClassifier(["", "  "])
