"""Page locators for the storefront (Playwright selector syntax)."""

# Header / search
SEARCH_BOX = "xpath=//form//input[@id='header-main-search-input']"
SEARCH_BOX_ALT = "css=input[id*='search'][type='search'], input[id*='search'][type='text']"
RESULT_LINK = "xpath=//div[@class='product-info']//a[@class='product-name']"

# Cookie / welcome popup
WELCOME_POPUP = "xpath=//h2[contains(text(),'Welcome')]"
ACCEPT_ALL = "xpath=//button[normalize-space(.)='Accept all']"

# Account menu and login form
ACCOUNT_ICON = "id=accountWidget"
LOGIN_LINK = "xpath=//button/following-sibling::div//div[@class='account-menu-login']//a"
ALREADY_LOGGED_IN = (
    "xpath=//button/following-sibling::div[@aria-labelledby='accountWidget']//div[contains(text(),'Welcome')]"
)
LOGOUT_LINK = (
    "xpath=//button/following-sibling::div[@aria-labelledby='accountWidget']//div//a[normalize-space(.)='Log out']"
)
LOGIN_EMAIL = "id=loginMail"
LOGIN_PASSWORD = "id=loginPassword"
LOGIN_SUBMIT = "xpath=//div[@class='login-submit']//button"

# "No results" banner variants
NO_PRODUCTS_BANNERS = (
    "xpath=//*[contains(.,'No products found')]",
    "xpath=//*[contains(.,'No results')]",
    "xpath=//*[contains(.,'0 results') or contains(.,'0 Results')]",
)

# Product detail page
ADD_TO_CART = "xpath=//form[@id='productDetailPageBuyProductForm']//button[@title='Add to Cart']"
VARIANT_SELECT = (
    "xpath=//form[@id='productDetailPageBuyProductForm']//select"
    "|//form[@id='productDetailPageBuyProductForm']//input[@type='radio']"
)
BUY_BOX_SPINNER = (
    "xpath=//div[contains(@class,'spinner') or contains(@class,'loading') or contains(@class,'spinner-border')]"
)
PRODUCT_NAME = "xpath=//div[@class='h1 product-name']"
ITEM_NUMBER = "xpath=//div[@class='product-number']//span"
PRODUCT_UPC = "xpath=//div[@class='product-upc']//span[contains(text(),'UPC')]/following-sibling::span"
VENDOR_ITEM_NUMBER = (
    "xpath=//div[@class='product-vendor-item-no']//span[contains(text(),'Vendor Item No')]/following-sibling::span"
)
CASE_PACK = "xpath=//div[@class='product-case-pack']//span[contains(text(),'Case Pack')]/following-sibling::span"
DESCRIPTION = "xpath=//div[@class='product-detail-description-text']"
PRICE = "xpath=//span[contains(@class,'customer-price')]"
PRICE_FALLBACK = (
    "xpath=//p[contains(@class,'product-detail-price')]"
    "//span[contains(@class,'price') and not(contains(@class,'customer-price'))]"
)
MSRP_PRICING = "xpath=//div[@class='msrp-info']//span[contains(text(),'MSRP Pricing')]/following-sibling::span"
STOCK = "xpath=//div[@class='product-data']//span[@class='product-stock']//span[@class='stock']"
OUT_OF_STOCK = "xpath=//div[@class='product-data']//span[@class='product-stock']//span[contains(@class,'out-of-stock')]"
SPEC_TABLE_BODY = "xpath=//table[contains(@class,'product-detail-properties-table')]/tbody"
